from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Enum as SAEnum,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "INCOME"
    expense = "EXPENSE"


class EmployeeType(str, Enum):
    fixed = "FIXED"
    hourly = "HOURLY"


class Category(str, Enum):
    venta_diaria = "Venta Diaria"
    otros_ingresos = "Otros Ingresos"
    gasto_caja = "Gasto de Caja"

    nomina_fija = "Nómina Fija"
    personal_horas = "Personal por Horas"
    seguridad_social = "Seguridad Social"

    materias_primas = "Materias Primas"
    proveedores_varios = "Proveedores Varios"
    mercaderia = "Mercadería"

    alquiler = "Alquiler"
    suministros = "Suministros (Luz/Agua/Net)"
    marketing = "Marketing"
    impuestos = "Impuestos"
    mantenimiento = "Mantenimiento"
    software = "Software/Suscripciones"
    amortizaciones = "Amortizaciones"
    leasing = "Leasings"
    comisiones = "Comisiones"
    profesionales = "Profesionales"

    # Records how income was collected; never part of financial totals.
    desglose_pago = "Desglose Pago (Info)"

    other = "Otros"

    @property
    def excluded_from_totals(self) -> bool:
        return self is Category.desglose_pago


def category_excluded_from_totals(category: str) -> bool:
    try:
        return Category(category).excluded_from_totals
    except ValueError:
        return False


class Section(str, Enum):
    caja = "caja"
    personal = "personal"
    proveedores = "proveedores"
    estructura = "estructura"
    anual = "anual"


CATEGORIES_BY_SECTION: dict[Section, tuple[Category, ...]] = {
    Section.caja: (Category.venta_diaria, Category.otros_ingresos, Category.gasto_caja),
    Section.personal: (
        Category.nomina_fija,
        Category.personal_horas,
        Category.seguridad_social,
    ),
    Section.proveedores: (
        Category.materias_primas,
        Category.mercaderia,
        Category.proveedores_varios,
    ),
    Section.estructura: (
        Category.alquiler,
        Category.suministros,
        Category.marketing,
        Category.impuestos,
        Category.mantenimiento,
        Category.software,
        Category.amortizaciones,
        Category.leasing,
        Category.comisiones,
        Category.profesionales,
    ),
}

# Categories offered for manual entry; the payment breakdown is internal.
ALL_CATEGORIES: tuple[Category, ...] = (
    *CATEGORIES_BY_SECTION[Section.caja],
    *CATEGORIES_BY_SECTION[Section.personal],
    *CATEGORIES_BY_SECTION[Section.proveedores],
    *CATEGORIES_BY_SECTION[Section.estructura],
    Category.other,
)


def in_section(category: str, section: Section) -> bool:
    return category in CATEGORIES_BY_SECTION.get(section, ())


TRANSACTION_TYPE_ENUM = SAEnum(
    TransactionType,
    name="transactiontype",
    native_enum=False,
    length=16,
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)

EMPLOYEE_TYPE_ENUM = SAEnum(
    EmployeeType,
    name="employeetype",
    native_enum=False,
    length=16,
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        TRANSACTION_TYPE_ENUM, nullable=False
    )
    supplier: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_transactions_date", "date"),
        Index("ix_transactions_category_date", "category", "date"),
        CheckConstraint("amount >= 0", name="ck_transactions_amount_positive"),
    )


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[EmployeeType] = mapped_column(EMPLOYEE_TYPE_ENUM, nullable=False)
    cost: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    extras: Mapped[Optional[Decimal]] = mapped_column(Numeric)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Supplier(Base):
    __tablename__ = "suppliers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)


class FixedExpense(Base):
    __tablename__ = "fixed_expenses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    default_category: Mapped[str] = mapped_column(String(100), nullable=False)
    default_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
