from sqlalchemy import Boolean, Column, ForeignKey, Text
from sqlalchemy.orm import relationship

from cicero_wa.database import Base


class Client(Base):
    __tablename__ = "clients"

    client_id = Column(Text, primary_key=True)
    nama = Column(Text, nullable=False)

    users = relationship("User", back_populates="client")


class User(Base):
    """Personnel record keyed by NRP/NIP."""

    __tablename__ = "users"

    user_id = Column(Text, primary_key=True)
    client_id = Column(Text, ForeignKey("clients.client_id"))
    nama = Column(Text)
    title = Column(Text)
    divisi = Column(Text)
    jabatan = Column(Text)
    desa = Column(Text)
    insta = Column(Text)
    tiktok = Column(Text)
    whatsapp = Column(Text, unique=True)
    status = Column(Boolean, nullable=False, default=True)
    ditbinmas = Column(Boolean, nullable=False, default=False)

    client = relationship("Client", back_populates="users")
