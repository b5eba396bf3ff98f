# Import all ORM models here so Alembic's env.py picks up their metadata automatically.
from solargen.models.backfill_run import BackfillRun
from solargen.models.reading import EnergyGenerationRecord
from solargen.services.lifecycle import DriverState

__all__ = ["BackfillRun", "DriverState", "EnergyGenerationRecord"]
