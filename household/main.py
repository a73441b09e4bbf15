from fastapi import FastAPI
from household.core.config import settings
from household.core.errors import register_exception_handlers
from household.core.logging import configure_logging
from household.api.routes.user import router as user_router
from household.api.routes.group import router as group_router
from household.api.routes.member import router as member_router
from household.api.routes.expense import router as expense_router
from household.api.routes.contribution import router as contribution_router
from household.api.routes.task import router as task_router

configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

app = FastAPI(title="Household Board")

register_exception_handlers(app)

@app.get("/")
async def root():
    return {"message": "Household Board is live"}

app.include_router(user_router, prefix="/api/users", tags=["users"])
app.include_router(group_router, prefix="/api/groups", tags=["groups"])
app.include_router(member_router, prefix="/api/group-members", tags=["group-members"])
app.include_router(expense_router, prefix="/api/expenses", tags=["expenses"])
app.include_router(contribution_router, prefix="/api/contributions", tags=["contributions"])
app.include_router(task_router, prefix="/api/tasks", tags=["tasks"])
