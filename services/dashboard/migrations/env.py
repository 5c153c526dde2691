from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from pipeline_analytics.database import Base, DATABASE_URL
from pipeline_analytics.models import daily_metric, applied_event  # noqa: F401

config = context.config
config.set_main_option("sqlalchemy.url", DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# CRM-owned tables are read by the engine but migrated by the CRM
ENGINE_TABLES = {"daily_metrics", "applied_metric_events"}


def include_object(obj, name, type_, reflected, compare_to):
    if type_ == "table":
        return name in ENGINE_TABLES
    table = getattr(obj, "table", None)
    return table is None or table.name in ENGINE_TABLES


def run_migrations_offline():
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        include_object=include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
