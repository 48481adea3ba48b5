# src/shop/accounts.py
from __future__ import annotations

import re
from datetime import date
from typing import List, Optional

from api.client import call_blocking
from api.users import UserService
from shop.models import RegistrationForm, SessionUser, User
from utils.logger import get_logger

logger = get_logger(__name__)

ALLOWED_DOMAINS = ("@duoc.cl", "@profesor.duoc.cl", "@gmail.com")
DISCOUNT_DOMAINS = ("@duoc.cl", "@profesor.duoc.cl")
MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 4
MIN_ADDRESS_LENGTH = 5
MIN_AGE = 18
MAX_AGE = 100
DEFAULT_AVATAR = "img/header/user-logo-generic-white-alt.png"


class RegistrationError(ValueError):
    def __init__(self, problems: List[str]):
        super().__init__("\n".join(problems))
        self.problems = problems


def _email_domain(email: str) -> str:
    if "@" not in email:
        return ""
    return "@" + email.split("@", 1)[1].lower()


def age_on(today: date, birth: date) -> int:
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def clean_phone(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


def validate_registration(form: RegistrationForm, today: Optional[date] = None) -> List[str]:
    """Return every problem with the form; an empty list means it is valid."""
    today = today or date.today()
    problems: List[str] = []

    if len(form.username.strip()) < MIN_USERNAME_LENGTH:
        problems.append(f"Username must have at least {MIN_USERNAME_LENGTH} characters.")

    if _email_domain(form.email.strip()) not in ALLOWED_DOMAINS:
        problems.append(f"Email domain not allowed, use one of: {', '.join(ALLOWED_DOMAINS)}")

    if len(form.password) < MIN_PASSWORD_LENGTH:
        problems.append(f"Password must have at least {MIN_PASSWORD_LENGTH} characters.")
    if form.password != form.password_confirm:
        problems.append("Passwords do not match.")

    if not form.birth_date:
        problems.append("Birth date is required.")
    else:
        try:
            birth = date.fromisoformat(form.birth_date)
        except ValueError:
            problems.append("Birth date must be in YYYY-MM-DD format.")
        else:
            age = age_on(today, birth)
            if birth > today:
                problems.append("Birth date cannot be in the future.")
            elif age < MIN_AGE:
                problems.append(f"You must be at least {MIN_AGE} years old.")
            elif age > MAX_AGE:
                problems.append(f"Age cannot be over {MAX_AGE} years.")

    phone = clean_phone(form.phone)
    if phone and len(phone) != 9:
        problems.append("Phone number must have 9 digits.")

    if len(form.address.strip()) < MIN_ADDRESS_LENGTH:
        problems.append(f"Address must have at least {MIN_ADDRESS_LENGTH} characters.")
    if not form.region:
        problems.append("Region is required.")
    if not form.commune:
        problems.append("Commune is required.")

    return problems


class AccountService:
    def __init__(self, users: UserService):
        self.users = users

    async def login(self, email: str, password: str) -> Optional[SessionUser]:
        """
        Match the credentials against the user listing, there is no auth
        endpoint. Returns None for unknown email or wrong password; transport
        failures raise ApiError.
        """
        user = await call_blocking(self.users.find_by_email, email)
        if user is None or user.password != password:
            logger.info(f"Failed login for {email}")
            return None
        logger.info(f"User {user.username} logged in")
        return SessionUser.from_user(user)

    async def register(self, form: RegistrationForm, today: Optional[date] = None) -> User:
        problems = validate_registration(form, today)
        if problems:
            raise RegistrationError(problems)

        email = form.email.strip()
        if await call_blocking(self.users.find_by_email, email) is not None:
            raise RegistrationError(["Email is already registered."])

        user = User(
            id=None,
            username=form.username.strip(),
            email=email,
            password=form.password,
            birth_date=form.birth_date,
            phone=clean_phone(form.phone),
            address=form.address.strip(),
            region=form.region,
            commune=form.commune,
            role="usuario",
            discount_eligible=_email_domain(email) in DISCOUNT_DOMAINS,
            avatar=DEFAULT_AVATAR,
        )
        created = await call_blocking(self.users.create, user)
        logger.info(f"Registered user {created.username} (id {created.id})")
        return created
