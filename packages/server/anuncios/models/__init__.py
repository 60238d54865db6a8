# Importing every table populates SQLModel.metadata
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization  # noqa: F401
from .organization_member import OrganizationMember  # noqa: F401
from .collection import Collection  # noqa: F401
from .listing import Listing  # noqa: F401
from .addon import Addon, UserAddon, OrganizationAddon  # noqa: F401
from .plan import Plan  # noqa: F401
from .subscription import Subscription  # noqa: F401
from .webhook_event import ProcessedWebhookEvent  # noqa: F401
