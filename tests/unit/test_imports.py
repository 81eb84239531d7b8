"""
Import validation tests.

These tests ensure all modules can be imported successfully, catching
issues like missing dependencies or circular imports BEFORE deployment.

Run with: pytest tests/unit/test_imports.py -v
"""

import importlib
import sys
from pathlib import Path

import pytest


# Add src to path to simulate Lambda environment
SRC_PATH = Path(__file__).parent.parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


class TestHandlerImports:
    """Verify all handler modules can be imported without errors."""

    @pytest.mark.parametrize("module_name, entrypoint", [
        ("handlers.main", "lambda_handler"),
        ("handlers.health_check", "lambda_handler"),
        ("handlers.customer_analytics", "loyalty_handler"),
        ("handlers.owner_analytics", "segments_handler"),
        ("handlers.insights", "lambda_handler"),
        ("handlers.batch_analytics", "scheduled_handler"),
    ])
    def test_handler_import(self, module_name: str, entrypoint: str):
        """Each handler module should import without errors."""
        try:
            module = importlib.import_module(module_name)
            assert hasattr(module, entrypoint), f"{module_name} missing {entrypoint}"
        except ImportError as e:
            pytest.fail(f"Failed to import {module_name}: {e}")


class TestServiceImports:
    """Verify all service modules can be imported."""

    @pytest.mark.parametrize("module_name", [
        "services.metrics",
        "services.monthly_series",
        "services.loyalty_service",
        "services.churn_service",
        "services.rfm_service",
        "services.clv_service",
        "services.segmentation_service",
        "services.forecast_service",
        "services.sales_analytics_service",
        "services.customer_insights_service",
        "services.insights_service",
        "services.batch_service",
    ])
    def test_service_import(self, module_name: str):
        """Each service module should import without errors."""
        try:
            importlib.import_module(module_name)
        except ImportError as e:
            pytest.fail(f"Failed to import {module_name}: {e}")


class TestModelImports:
    """Verify all model modules can be imported."""

    @pytest.mark.parametrize("module_name", [
        "models.analytics",
        "models.customer",
        "models.insight",
        "models.response",
    ])
    def test_model_import(self, module_name: str):
        """Each model module should import without errors."""
        try:
            importlib.import_module(module_name)
        except ImportError as e:
            pytest.fail(f"Failed to import {module_name}: {e}")


class TestUtilImports:
    """Verify all utility modules can be imported."""

    @pytest.mark.parametrize("module_name", [
        "config.settings",
        "repositories.postgres_repo",
        "utils.concurrency",
        "utils.dates",
        "utils.db",
        "utils.error_handling",
        "utils.http",
        "utils.logging_config",
        "utils.validators",
    ])
    def test_util_import(self, module_name: str):
        """Each utility module should import without errors."""
        try:
            importlib.import_module(module_name)
        except ImportError as e:
            pytest.fail(f"Failed to import {module_name}: {e}")


class TestNoSrcPrefix:
    """Ensure no modules use 'from src.' imports (breaks in Lambda)."""

    @pytest.mark.parametrize("package", [
        "handlers", "services", "models", "utils", "repositories", "config",
    ])
    def test_no_src_prefix(self, package: str):
        """Source files should not have 'from src.' imports."""
        for py_file in (SRC_PATH / package).glob("*.py"):
            content = py_file.read_text()
            assert "from src." not in content, f"{py_file.name} contains 'from src.' import"
            assert "import src." not in content, f"{py_file.name} contains 'import src.' import"
