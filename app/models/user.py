from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, func

from app.models.campaign import Base


class User(Base):
    """
    Wallet identity with its creator profile.

    Rows are written by the identity service; this service only reads them to feed
    creator signals into trust analysis.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    wallet_address = Column(String, nullable=False, unique=True, index=True)
    role = Column(String, nullable=False, default="user")  # user | admin
    user_type = Column(String, nullable=False, default="donor")  # donor | creator
    email = Column(String, nullable=True)
    creator_name = Column(String, nullable=True)
    creator_bio = Column(Text, nullable=True)
    creator_website = Column(String, nullable=True)
    creator_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, wallet_address='{self.wallet_address}', user_type='{self.user_type}')>"
