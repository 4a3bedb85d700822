import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./referrals.db")
SQLALCHEMY_DATABASE_URI = DATABASE_URL

# JWT Settings
SECRET_KEY: str = os.getenv("SECRET_KEY", "a_very_secret_key_that_should_be_in_env_file_and_much_stronger") # In a real app, use a strong, randomly generated key
ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 30))

# Commission settings. A new enrolment is worth COMMISSION_RATE * COMMISSION_BASE_AMOUNT.
COMMISSION_RATE: Decimal = Decimal(os.getenv("COMMISSION_RATE", "0.50"))
COMMISSION_BASE_AMOUNT: Decimal = Decimal(os.getenv("COMMISSION_BASE_AMOUNT", "1000"))

# Super-admin created by app.db.init_db on an empty database
FIRST_SUPERUSER_EMAIL: str = os.getenv("FIRST_SUPERUSER_EMAIL", "admin@example.com")
FIRST_SUPERUSER_PASSWORD: str = os.getenv("FIRST_SUPERUSER_PASSWORD", "change-me-admin")
