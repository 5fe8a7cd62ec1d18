from sqlalchemy import Column, Integer, String, Text, Numeric
from database import Base
from models.audit_mixin import TimestampMixin


class Product(Base, TimestampMixin):
    """A registered device. The table keeps the historical name ``products``."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True, default="")
    price = Column(Numeric(10, 2), nullable=False, default=0)
    stock_quantity = Column(Integer, default=0)
    photo_filename = Column(String(255), nullable=True)
