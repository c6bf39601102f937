"""Pydantic schemas for account and password reset requests."""
from pydantic import BaseModel


class CredentialsSchema(BaseModel):
    email: str
    password: str


class ForgotPasswordSchema(BaseModel):
    email: str


class ResetPasswordSchema(BaseModel):
    token: str
    password: str


class UserOutSchema(BaseModel):
    id: int
    email: str

    class Config:
        from_attributes = True
