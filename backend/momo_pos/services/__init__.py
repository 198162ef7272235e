# Services module

from momo_pos.services.menu_catalog import MenuCatalog, RecipeRequirement, RecipeResolution
from momo_pos.services.stock_ledger import StockLedger
from momo_pos.services.procurement_service import ProcurementService
from momo_pos.services.consumption_service import ConsumptionReport, OrderConsumptionResolver
from momo_pos.services.order_service import OrderService, SavedOrder, advance
from momo_pos.services.reporting_service import ReportingService
