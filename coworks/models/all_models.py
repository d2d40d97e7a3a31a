# Import all models so Base.metadata.create_all() can see them.

from coworks.models.customer import Customer  # noqa: F401
from coworks.models.resource import Branch, SeatingType, Seat  # noqa: F401
from coworks.models.coins import CoinTransaction  # noqa: F401
from coworks.models.booking import SeatBooking, MeetingBooking  # noqa: F401
from coworks.models.payment import Payment, WebhookEvent  # noqa: F401
