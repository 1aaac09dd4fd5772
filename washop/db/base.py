"""Import every model so ``Base.metadata`` is complete (used by Alembic and tests)."""

from washop.db.base_class import Base  # noqa: F401
from washop.models.shop import Shop, UserRole  # noqa: F401
from washop.models.order import Customer, Order, OrderItem  # noqa: F401
from washop.models.payment import Payment  # noqa: F401
from washop.models.wallet import SellerWallet  # noqa: F401
from washop.models.redemption_code import RedemptionCode  # noqa: F401
from washop.models.subscription import Subscription  # noqa: F401
from washop.models.payment_proof import PaymentProof  # noqa: F401
