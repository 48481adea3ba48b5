# src/api/users.py
from typing import List, Optional

from api.client import ApiClient, parse_object
from shop.models import User

RESOURCE = "/usuarios"


class UserService:
    """Remote users: /usuarios"""

    def __init__(self, client: ApiClient):
        self.client = client

    def list(self) -> List[User]:
        data = self.client.get(RESOURCE)
        if not isinstance(data, list):
            return []
        return [parse_object(User.from_api, item, "user") for item in data]

    def get(self, user_id: int) -> User:
        return parse_object(User.from_api, self.client.get(f"{RESOURCE}/{user_id}"), "user")

    def create(self, user: User) -> User:
        return parse_object(User.from_api, self.client.post(RESOURCE, user.to_api()), "user")

    def update(self, user_id: int, user: User) -> User:
        data = self.client.put(f"{RESOURCE}/{user_id}", user.to_api())
        return parse_object(User.from_api, data, "user")

    def delete(self, user_id: int) -> None:
        self.client.delete(f"{RESOURCE}/{user_id}")

    def find_by_email(self, email: str) -> Optional[User]:
        """The backend has no lookup endpoint, so this scans the listing."""
        wanted = email.strip().lower()
        for user in self.list():
            if user.email.lower() == wanted:
                return user
        return None
