from sqlalchemy import Boolean, Column, Integer, String

from storefront.db import Base


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    full_name = Column(String(256), nullable=False)
    phone = Column(String(32), nullable=False)
    address_line_1 = Column(String(256), nullable=False)
    address_line_2 = Column(String(256), nullable=True)
    city = Column(String(128), nullable=False)
    state = Column(String(128), nullable=False)
    postal_code = Column(String(32), nullable=True)
    country = Column(String(64), nullable=False, default="Nepal")
    is_default = Column(Boolean, default=False, nullable=False)
