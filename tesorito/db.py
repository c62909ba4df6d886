import logging
import secrets

from sqlmodel import SQLModel, create_engine, Session, select
from sqlalchemy import event

from .config import CONFIG
# Modelli (solo import: registrano le tabelle nel metadata)
from .models import MenuItem
from .models_users import User, UserRole
from .inventory.models_inventory import Ingredient, RecipeItem, StockAdjustment, SmartBatch  # noqa: F401

log = logging.getLogger("tesorito.db")

# ---- Engine ----
DB_URL = CONFIG.database.url
IS_SQLITE = DB_URL.startswith("sqlite")

connect_args = {"check_same_thread": False, "timeout": 30} if IS_SQLITE else {}

engine = create_engine(
    DB_URL,
    echo=CONFIG.database.echo,
    connect_args=connect_args,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
    pool_timeout=10,
    pool_recycle=1800,
)

if IS_SQLITE:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragmas(dbapi_connection, connection_record):
        cur = dbapi_connection.cursor()
        # WAL migliora i read paralleli con write
        cur.execute("PRAGMA journal_mode=WAL;")
        cur.execute("PRAGMA busy_timeout=30000;")
        cur.execute("PRAGMA foreign_keys=ON;")
        cur.close()


# ---- Schema ----
def create_db_and_tables(bind=None):
    SQLModel.metadata.create_all(bind or engine)


# ---- Sessioni: dipendenza FastAPI ----
def get_session_dep():
    """Una sessione per richiesta; senza commit esplicito le modifiche vengono scartate."""
    with Session(engine, expire_on_commit=False) as session:
        yield session


# ---- Seed ----
def seed_if_empty(bind=None):
    """Crea l'amministratore iniziale e un menu demo se il DB è vuoto."""
    with Session(bind or engine) as session:
        if not session.exec(select(User)).first():
            key = CONFIG.auth.bootstrap_admin_key or secrets.token_hex(16)
            session.add(User(email="admin@tesorito.local", name="Admin", role=UserRole.ADMIN, api_key=key))
            session.commit()
            if not CONFIG.auth.bootstrap_admin_key:
                log.warning("Created bootstrap admin user, API key: %s", key)

        if not session.exec(select(Ingredient)).first():
            carne = Ingredient(name="Carne al pastor", unit="kg", current_stock=10.0, minimum_stock=2.0, cost_per_unit_cents=18000)
            tortilla = Ingredient(name="Tortilla", unit="unit", current_stock=200, minimum_stock=50, cost_per_unit_cents=150)
            pina = Ingredient(name="Piña", unit="kg", current_stock=3.0, minimum_stock=1.0, cost_per_unit_cents=4000)
            session.add_all([carne, tortilla, pina])
            session.commit()

        if not session.exec(select(MenuItem)).first():
            carne = session.exec(select(Ingredient).where(Ingredient.name == "Carne al pastor")).one()
            tortilla = session.exec(select(Ingredient).where(Ingredient.name == "Tortilla")).one()
            pina = session.exec(select(Ingredient).where(Ingredient.name == "Piña")).one()

            taco = MenuItem(name="Taco al pastor", price_cents=2500, category="Tacos")
            gringa = MenuItem(name="Gringa", price_cents=6500, category="Especiales")
            agua = MenuItem(name="Agua de horchata", price_cents=3000, category="Bebidas")
            session.add_all([taco, gringa, agua])
            session.flush()  # ottieni gli id

            session.add_all([
                RecipeItem(menu_item_id=taco.id, ingredient_id=carne.id, quantity_required=0.08),
                RecipeItem(menu_item_id=taco.id, ingredient_id=tortilla.id, quantity_required=1),
                RecipeItem(menu_item_id=taco.id, ingredient_id=pina.id, quantity_required=0.01),
                RecipeItem(menu_item_id=gringa.id, ingredient_id=carne.id, quantity_required=0.15),
                RecipeItem(menu_item_id=gringa.id, ingredient_id=tortilla.id, quantity_required=2),
            ])
            session.commit()
