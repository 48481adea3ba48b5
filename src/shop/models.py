# dataclass models shared by the api client, the shop logic and the views
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple


def _opt_str(data: Dict[str, Any], key: str) -> Optional[str]:
    val = data.get(key)
    if val is None:
        return None
    val = str(val)
    return val if val else None


def _to_int(val, default: int = 0) -> int:
    try:
        return int(val)
    except (TypeError, ValueError):
        return default


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class Product:
    code: str
    name: str
    price: int
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    distributor: Optional[str] = None
    brand: Optional[str] = None
    material: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    link: Optional[str] = None

    def __post_init__(self):
        if self.price < 0:
            raise ValueError(f"Product {self.code} has a negative price")

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> Product:
        return cls(
            code=str(data["codigo"]),
            name=str(data.get("nombre") or ""),
            price=_to_int(data.get("precio")),
            category=_opt_str(data, "categoria"),
            manufacturer=_opt_str(data, "fabricante"),
            distributor=_opt_str(data, "distribuidor"),
            brand=_opt_str(data, "Marca"),
            material=_opt_str(data, "Material"),
            description=_opt_str(data, "Descripcion"),
            image=_opt_str(data, "imagen"),
            link=_opt_str(data, "enlace"),
        )

    def to_api(self, include_code: bool = True) -> Dict[str, Any]:
        data = {
            "codigo": self.code if include_code else None,
            "nombre": self.name,
            "precio": self.price,
            "categoria": self.category,
            "fabricante": self.manufacturer,
            "distribuidor": self.distributor,
            "Marca": self.brand,
            "Material": self.material,
            "Descripcion": self.description,
            "imagen": self.image,
            "enlace": self.link,
        }
        return _drop_none(data)


@dataclass(frozen=True)
class CartLine:
    product: Product
    unit_price: int
    quantity: int

    @property
    def code(self) -> str:
        return self.product.code

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity

    def to_store(self) -> Dict[str, Any]:
        return {
            "product": self.product.to_api(),
            "unit_price": self.unit_price,
            "quantity": self.quantity,
        }

    @classmethod
    def from_store(cls, data: Dict[str, Any]) -> CartLine:
        product = Product.from_api(data["product"])
        quantity = int(data["quantity"])
        if quantity < 1:
            raise ValueError(f"Cart line {product.code} has quantity {quantity}")
        return cls(
            product=product,
            unit_price=int(data.get("unit_price", product.price)),
            quantity=quantity,
        )


class OrderStatus(str, Enum):
    IN_PREPARATION = "en preparacion"
    DELIVERED = "entregado"

    @property
    def label(self) -> str:
        return {
            OrderStatus.IN_PREPARATION: "In preparation",
            OrderStatus.DELIVERED: "Delivered",
        }[self]

    def can_transition_to(self, new: OrderStatus) -> bool:
        """Only forward: in preparation -> delivered. Same status is allowed."""
        order = [OrderStatus.IN_PREPARATION, OrderStatus.DELIVERED]
        return order.index(new) >= order.index(self)


@dataclass(frozen=True)
class OrderLine:
    code: str
    name: Optional[str]
    quantity: int
    unit_price: int

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> OrderLine:
        return cls(
            code=str(data.get("codigo", "")),
            name=_opt_str(data, "nombre"),
            quantity=_to_int(data.get("cantidad")),
            unit_price=_to_int(data.get("precio")),
        )

    def to_api(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "codigo": self.code,
                "nombre": self.name,
                "cantidad": self.quantity,
                "precio": self.unit_price,
            }
        )


@dataclass(frozen=True)
class Order:
    id: int
    created_at: Optional[datetime]
    user_id: int
    lines: Tuple[OrderLine, ...]
    status: OrderStatus
    total: int
    address: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> Order:
        lines = tuple(OrderLine.from_api(p) for p in data.get("productos") or [])
        total = data.get("total")
        created_at = None
        if data.get("fecha"):
            try:
                created_at = datetime.fromisoformat(str(data["fecha"]))
            except ValueError:
                created_at = None
        return cls(
            id=int(data["id"]),
            created_at=created_at,
            user_id=_to_int(data.get("clienteId")),
            lines=lines,
            status=OrderStatus(data.get("estado", OrderStatus.IN_PREPARATION.value)),
            # server total wins, client sum is the fallback
            total=(
                _to_int(total)
                if total is not None
                else sum(line.subtotal for line in lines)
            ),
            address=_opt_str(data, "direccion"),
        )


@dataclass(frozen=True)
class OrderPayload:
    """Body of a create-order call. The server assigns id, date and total."""

    user_id: int
    lines: Tuple[OrderLine, ...]
    status: OrderStatus = OrderStatus.IN_PREPARATION
    address: Optional[str] = None

    def to_api(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "clienteId": self.user_id,
                "productos": [line.to_api() for line in self.lines],
                "estado": self.status.value,
                "direccion": self.address or None,
            }
        )


@dataclass(frozen=True)
class User:
    id: Optional[int]
    username: str
    email: str
    password: str
    birth_date: str = ""  # YYYY-MM-DD
    phone: str = ""
    address: str = ""
    region: str = ""
    commune: str = ""
    role: Literal["usuario", "admin"] = "usuario"
    discount_eligible: bool = False
    avatar: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> User:
        return cls(
            id=_to_int(data.get("id")) if data.get("id") is not None else None,
            username=str(data.get("username") or ""),
            email=str(data.get("correo") or ""),
            password=str(data.get("contrasena") or ""),
            birth_date=str(data.get("fechaNacimiento") or ""),
            phone=str(data.get("telefono") or ""),
            address=str(data.get("direccion") or ""),
            region=str(data.get("region") or ""),
            commune=str(data.get("comuna") or ""),
            role="admin" if data.get("rol") == "admin" else "usuario",
            discount_eligible=bool(data.get("descuentoDuoc")),
            avatar=str(data.get("fotoPerfil") or ""),
        )

    def to_api(self) -> Dict[str, Any]:
        """Payload without the id, which the server assigns."""
        return {
            "username": self.username,
            "correo": self.email,
            "contrasena": self.password,
            "fechaNacimiento": self.birth_date,
            "telefono": self.phone,
            "direccion": self.address,
            "region": self.region,
            "comuna": self.commune,
            "rol": self.role,
            "descuentoDuoc": self.discount_eligible,
            "fotoPerfil": self.avatar,
        }


@dataclass(frozen=True)
class SessionUser:
    id: int
    username: str
    role: Literal["admin", "user"] = "user"
    discount_eligible: bool = False
    avatar: Optional[str] = None
    address: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_user(cls, user: User) -> SessionUser:
        return cls(
            id=int(user.id or 0),
            username=user.username,
            role="admin" if user.role == "admin" else "user",
            discount_eligible=user.discount_eligible,
            avatar=user.avatar or None,
            address=user.address or None,
        )

    def to_store(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "username": self.username,
                "role": self.role,
                "discount_eligible": self.discount_eligible,
                "avatar": self.avatar,
                "address": self.address,
            }
        )

    @classmethod
    def from_store(cls, data: Dict[str, Any]) -> SessionUser:
        return cls(
            id=int(data["id"]),
            username=str(data["username"]),
            role="admin" if data.get("role") == "admin" else "user",
            discount_eligible=bool(data.get("discount_eligible")),
            avatar=data.get("avatar"),
            address=data.get("address"),
        )


@dataclass
class RegistrationForm:
    username: str = ""
    email: str = ""
    birth_date: str = ""
    password: str = ""
    password_confirm: str = ""
    phone: str = ""
    address: str = ""
    region: str = ""
    commune: str = ""


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    points_earned: int
    points_total: int
    shipping_code: int
    lines: List[CartLine] = field(default_factory=list)
