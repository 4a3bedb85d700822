# Import all the models, so that Base has them before being
# imported by Alembic or used by create_all
from app.db.base_class import Base # noqa
from app.models.agency import Agency # noqa
from app.models.user import User # noqa
from app.models.client import ReferredClient # noqa
from app.models.commission import Commission # noqa
