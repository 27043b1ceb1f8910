from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from .common import gen_id

class Client(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=gen_id)
    name: str = Field(min_length=1)
    email: EmailStr
    address: str = ""
    phone: str = ""
    siret: Optional[str] = None
    vat_number: Optional[str] = None

class Company(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    vat_number: Optional[str] = None
    siret: Optional[str] = None
    logo: Optional[str] = None  # chemin ou data-URL
