from fastapi import FastAPI
from tortoise.contrib.fastapi import register_tortoise

from app import settings
from app.routers import assignment, booking, invoice

TORTOISE_MODULES = {"models": ["app.models"]}

app = FastAPI(title="Beauty bookings service")
app.include_router(booking.router)
app.include_router(assignment.router)
app.include_router(invoice.router)

register_tortoise(
    app,
    db_url=settings.db_url,
    modules=TORTOISE_MODULES,
    generate_schemas=settings.generate_schemas,
)
