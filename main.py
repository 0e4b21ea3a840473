import logging
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.exc import SQLAlchemyError

from advisor import FinancialAdvisor
from config import get_settings
from csv_utils import export_transactions
from metrics import search_transactions, transactions_for_section, transactions_in_period
from models import ALL_CATEGORIES, CATEGORIES_BY_SECTION, Section
from periods import Period, month_period, year_period
from recurrence import local_today
from scheduler import SchedulerManager
from schemas import (
    EmployeeIn,
    FixedExpenseIn,
    PaymentBreakdownIn,
    SessionExpenseIn,
    SessionIn,
    SessionIncomesIn,
    StaffHoursIn,
    SupplierIn,
    TransactionIn,
)
from services import ServiceSet, build_services
from sessions import PAYMENT_FIELDS, CashSessionService, PaymentBreakdown
from storage import NOT_CONNECTED, NotConnectedError, Store, StoreOperationError, get_store

logger = logging.getLogger(__name__)

app = FastAPI(title="NeonFlow Finanzas")


@app.exception_handler(NotConnectedError)
def not_connected_handler(request: Request, exc: NotConnectedError):
    return JSONResponse(status_code=503, content={"detail": NOT_CONNECTED})


@app.exception_handler(StoreOperationError)
def store_error_handler(request: Request, exc: StoreOperationError):
    return JSONResponse(status_code=502, content={"detail": str(exc)})


def get_active_store() -> Store:
    return get_store()


def get_services(store: Store = Depends(get_active_store)) -> ServiceSet:
    return build_services(store)


def get_sessions(services: ServiceSet = Depends(get_services)) -> CashSessionService:
    return CashSessionService(services.transactions, services.employees)


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def month_from_param(value: Optional[str]) -> Period:
    try:
        return month_period(value, today=local_today())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def year_from_param(value: Optional[str]) -> Period:
    try:
        return year_period(value, today=local_today())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def section_from_param(value: str) -> Section:
    try:
        return Section(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown section: {value}") from exc


def payment_view(breakdown: PaymentBreakdown) -> dict:
    return {
        "cash": breakdown.cash,
        "card": breakdown.card,
        "transfer": breakdown.transfer,
        "total": breakdown.total,
        "total_income": breakdown.total_income,
        "difference": breakdown.difference,
    }


# Status and administration


@app.get("/api/status")
def api_status(store: Store = Depends(get_active_store)):
    settings = get_settings()
    return {
        "connected": store.is_connected(),
        "storage": settings.storage_backend,
        "database_url_source": settings.database_url_source,
    }


@app.get("/api/categories")
def api_categories():
    return {
        "all": [c.value for c in ALL_CATEGORIES],
        "sections": {
            section.value: [c.value for c in categories]
            for section, categories in CATEGORIES_BY_SECTION.items()
        },
    }


@app.post("/admin/init-schema")
def init_schema(store: Store = Depends(get_active_store)):
    try:
        store.initialize_schema()
    except NotConnectedError:
        raise
    except (SQLAlchemyError, OSError) as exc:
        logger.exception("init_schema_failed")
        raise StoreOperationError("Failed to initialize schema") from exc
    return {"status": "ok"}


@app.post("/admin/post-recurring")
def post_recurring(month: Optional[str] = None, services: ServiceSet = Depends(get_services)):
    period = month_from_param(month)
    posted = services.fixed_expenses.post_recurring(period, services.transactions)
    return {"month": period.slug, "posted": posted}


# Transactions


@app.get("/api/transactions")
def api_transactions(
    q: Optional[str] = None,
    section: Optional[str] = None,
    month: Optional[str] = None,
    year: Optional[str] = None,
    services: ServiceSet = Depends(get_services),
):
    items = services.transactions.list_all()
    if section:
        selected = section_from_param(section)
        period = year_from_param(year) if selected == Section.anual else None
        items = transactions_for_section(items, selected, year=period)
    elif year:
        items = transactions_in_period(items, year_from_param(year))
    if month:
        items = transactions_in_period(items, month_from_param(month))
    return search_transactions(items, q)


@app.post("/api/transactions")
def create_transaction(payload: TransactionIn, services: ServiceSet = Depends(get_services)):
    return services.transactions.create(payload)


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(transaction_id: str, services: ServiceSet = Depends(get_services)):
    return services.transactions.delete(transaction_id)


@app.get("/transactions/export.csv")
def export_transactions_endpoint(
    q: Optional[str] = None, services: ServiceSet = Depends(get_services)
):
    transactions = services.transactions.search(q)
    csv_text = export_transactions(transactions)
    filename = f"transacciones_neonflow_{local_today().isoformat()}.csv"
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# Directory tables


@app.get("/api/employees")
def api_employees(services: ServiceSet = Depends(get_services)):
    return services.employees.list_all()


@app.post("/api/employees")
def save_employee(payload: EmployeeIn, services: ServiceSet = Depends(get_services)):
    return services.employees.save(payload)


@app.delete("/api/employees/{employee_id}")
def delete_employee(employee_id: str, services: ServiceSet = Depends(get_services)):
    return services.employees.delete(employee_id)


@app.get("/api/suppliers")
def api_suppliers(services: ServiceSet = Depends(get_services)):
    return services.suppliers.list_all()


@app.post("/api/suppliers")
def save_supplier(payload: SupplierIn, services: ServiceSet = Depends(get_services)):
    return services.suppliers.save(payload)


@app.delete("/api/suppliers/{supplier_id}")
def delete_supplier(supplier_id: str, services: ServiceSet = Depends(get_services)):
    return services.suppliers.delete(supplier_id)


@app.get("/api/fixed-expenses")
def api_fixed_expenses(services: ServiceSet = Depends(get_services)):
    return services.fixed_expenses.list_all()


@app.post("/api/fixed-expenses")
def save_fixed_expense(payload: FixedExpenseIn, services: ServiceSet = Depends(get_services)):
    return services.fixed_expenses.save(payload)


@app.delete("/api/fixed-expenses/{item_id}")
def delete_fixed_expense(item_id: str, services: ServiceSet = Depends(get_services)):
    return services.fixed_expenses.delete(item_id)


# Dashboard views


@app.get("/api/dashboard")
def api_dashboard(month: Optional[str] = None, services: ServiceSet = Depends(get_services)):
    return services.dashboard.monthly(month_from_param(month))


@app.get("/api/views/{section}")
def api_section_view(
    section: str, year: Optional[str] = None, services: ServiceSet = Depends(get_services)
):
    selected = section_from_param(section)
    period = year_from_param(year) if selected == Section.anual else None
    return services.dashboard.section_view(selected, year=period)


@app.get("/api/rankings/suppliers")
def api_supplier_ranking(services: ServiceSet = Depends(get_services)):
    return services.dashboard.supplier_ranking()


@app.get("/api/rankings/concepts")
def api_concept_ranking(services: ServiceSet = Depends(get_services)):
    return services.dashboard.concept_ranking()


@app.get("/api/annual")
def api_annual(year: Optional[str] = None, services: ServiceSet = Depends(get_services)):
    return services.dashboard.annual(year_from_param(year))


@app.get("/api/personal")
def api_personal(month: Optional[str] = None, services: ServiceSet = Depends(get_services)):
    return services.dashboard.personal(month_from_param(month))


@app.get("/api/caja")
def api_caja(services: ServiceSet = Depends(get_services)):
    return services.dashboard.caja()


@app.get("/api/advice")
def api_advice(services: ServiceSet = Depends(get_services)):
    transactions = services.transactions.list_all()
    return {"advice": FinancialAdvisor().advice(transactions)}


# Cash sessions


@app.get("/api/sessions")
def api_sessions(sessions: CashSessionService = Depends(get_sessions)):
    return sessions.list_sessions()


@app.post("/api/sessions")
def create_session(payload: SessionIn, sessions: CashSessionService = Depends(get_sessions)):
    record = sessions.create_session(payload.date, payload.title)
    if record is None:
        raise HTTPException(status_code=400, detail="Session title is required")
    return record


@app.get("/api/sessions/{day}")
def session_detail(day: date, sessions: CashSessionService = Depends(get_sessions)):
    return {
        "date": day,
        "title": sessions.title_for(day),
        "summary": sessions.summary(day),
        "incomes": sessions.income_values(day),
        "expenses": sessions.direct_expenses(day),
        "staff": sessions.hourly_staff(day),
        "payments": payment_view(sessions.payment_breakdown(day)),
    }


@app.put("/api/sessions/{day}/incomes")
def save_session_incomes(
    day: date,
    payload: SessionIncomesIn,
    sessions: CashSessionService = Depends(get_sessions),
):
    sessions.save_incomes(day, payload.values)
    return {"incomes": sessions.income_values(day), "summary": sessions.summary(day)}


@app.post("/api/sessions/{day}/expenses")
def add_session_expense(
    day: date,
    payload: SessionExpenseIn,
    sessions: CashSessionService = Depends(get_sessions),
):
    record = sessions.add_expense(day, payload.description, payload.amount)
    if record is None:
        raise HTTPException(
            status_code=400, detail="Expense needs a description and a positive amount"
        )
    return {"expenses": sessions.direct_expenses(day), "summary": sessions.summary(day)}


@app.delete("/api/sessions/{day}/transactions/{transaction_id}")
def remove_session_transaction(
    day: date,
    transaction_id: str,
    sessions: CashSessionService = Depends(get_sessions),
):
    sessions.remove_transaction(transaction_id)
    return {"summary": sessions.summary(day)}


@app.put("/api/sessions/{day}/staff/{employee_id}")
def set_session_staff(
    day: date,
    employee_id: str,
    payload: StaffHoursIn,
    services: ServiceSet = Depends(get_services),
    sessions: CashSessionService = Depends(get_sessions),
):
    try:
        employee = services.employees.get(employee_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    sessions.set_hourly_hours(day, employee, payload.hours)
    return {"staff": sessions.hourly_staff(day), "summary": sessions.summary(day)}


@app.put("/api/sessions/{day}/payments")
def save_session_payments(
    day: date,
    payload: PaymentBreakdownIn,
    sessions: CashSessionService = Depends(get_sessions),
):
    breakdown = sessions.payment_breakdown(day)
    rejected = []
    for field_name in PAYMENT_FIELDS:
        if field_name not in payload.model_fields_set:
            continue
        if not breakdown.apply(field_name, getattr(payload, field_name)):
            rejected.append(field_name)
    sessions.save_payments(day, breakdown)
    return {"payments": payment_view(breakdown), "rejected": rejected}


@app.delete("/api/sessions/{day}")
def delete_session(day: date, sessions: CashSessionService = Depends(get_sessions)):
    sessions.delete_session(day)
    return {"deleted": day}


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
