from typing import Optional

from schooldata.context.session import TenantSession
from schooldata.hooks.cache import QueryCache
from schooldata.hooks.resources import ScopedResource


class StudentHooks(ScopedResource):
    """Learner records of the selected school and academic year."""

    read_only_messages = {
        "create": "Cannot add students to a read-only academic year. "
        "Switch to the current academic year.",
        "update": "Cannot modify students in a read-only academic year. "
        "Switch to the current academic year.",
        "delete": "Cannot delete students from a read-only academic year.",
        "import": "Cannot import students to a read-only academic year.",
    }

    def __init__(self, session: TenantSession, cache: Optional[QueryCache] = None):
        super().__init__(
            session, "students", cache=cache, order_by="student_name", label="students"
        )
