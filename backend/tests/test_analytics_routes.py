# Overview: Pytest coverage for the analytics and system HTTP endpoints.

"""
Analytics Route Tests

Coverage:
- 200 payloads for each report
- 400 for missing/invalid/reversed dates and missing site_id on ROI
- 404 for unknown site_id
- 503 when the database fails
"""

from datetime import date

from sqlalchemy.exc import OperationalError

from quarrydesk.services import metrics_service


class TestPeriodMetricsRoute:
    def test_basic_period(self, client, db_session, quarry_a, make_sale):
        make_sale(quarry_a, date(2025, 3, 10), quantity=100, price=50, commission=2)

        response = client.get(f"/api/analytics/period-metrics?site_id={quarry_a.id}&from=2025-03-10&to=2025-03-10")

        assert response.status_code == 200
        data = response.get_json()
        assert data["revenue"] == 5000.0
        assert data["total_expenses"] == 1700.0
        assert data["net_income"] == 3300.0
        assert data["expenses"]["by_source"]["LoadersFee"] == 1000.0
        assert "items" not in data["expenses"]

    def test_include_items(self, client, db_session, quarry_a):
        response = client.get(
            f"/api/analytics/period-metrics?site_id={quarry_a.id}&from=2025-03-10&to=2025-03-12&include_items=true"
        )
        assert response.status_code == 200
        assert response.get_json()["expenses"]["items"] == []

    def test_all_sites_when_site_id_omitted(self, client, db_session, quarry_a):
        response = client.get("/api/analytics/period-metrics?from=2025-03-10&to=2025-03-12")
        assert response.status_code == 200
        assert response.get_json()["quarry_id"] is None

    def test_missing_from(self, client, db_session, quarry_a):
        response = client.get(f"/api/analytics/period-metrics?site_id={quarry_a.id}&to=2025-03-10")
        assert response.status_code == 400
        assert response.get_json()["error"] == "from is required"

    def test_invalid_date(self, client, db_session, quarry_a):
        response = client.get(f"/api/analytics/period-metrics?site_id={quarry_a.id}&from=10/03/2025&to=2025-03-10")
        assert response.status_code == 400

    def test_reversed_range(self, client, db_session, quarry_a):
        response = client.get(f"/api/analytics/period-metrics?site_id={quarry_a.id}&from=2025-03-10&to=2025-03-01")
        assert response.status_code == 400

    def test_non_integer_site(self, client, db_session):
        response = client.get("/api/analytics/period-metrics?site_id=abc&from=2025-03-10&to=2025-03-10")
        assert response.status_code == 400

    def test_unknown_site(self, client, db_session):
        response = client.get("/api/analytics/period-metrics?site_id=999&from=2025-03-10&to=2025-03-10")
        assert response.status_code == 404

    def test_database_failure_returns_503(self, client, db_session, quarry_a, monkeypatch):
        def _fail(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        monkeypatch.setattr(metrics_service, "get_period_metrics", _fail)

        response = client.get(f"/api/analytics/period-metrics?site_id={quarry_a.id}&from=2025-03-10&to=2025-03-10")

        assert response.status_code == 503
        assert response.get_json()["error"] == "Database unavailable"


class TestOtherReports:
    def test_daily_trend(self, client, db_session, quarry_a):
        response = client.get(f"/api/analytics/daily-trend?site_id={quarry_a.id}&from=2025-03-01&to=2025-03-07")
        assert response.status_code == 200
        rows = response.get_json()["rows"]
        assert len(rows) == 7
        assert rows[0]["label"] == "01/03"

    def test_product_breakdown(self, client, db_session, quarry_a, make_sale):
        make_sale(quarry_a, date(2025, 3, 2), product="Size 9", quantity=10, price=45)

        response = client.get(f"/api/analytics/product-breakdown?site_id={quarry_a.id}&from=2025-03-01&to=2025-03-07")

        assert response.status_code == 200
        assert response.get_json()["rows"][0]["product_name"] == "Size 9"

    def test_comparison(self, client, db_session, quarry_a):
        response = client.get(f"/api/analytics/comparison?site_id={quarry_a.id}&from=2025-03-08&to=2025-03-14")
        assert response.status_code == 200
        assert response.get_json()["previous"]["to_date"] == "2025-03-07"

    def test_roi_requires_site(self, client, db_session):
        response = client.get("/api/analytics/roi")
        assert response.status_code == 400

    def test_roi_without_investment(self, client, db_session, quarry_a):
        response = client.get(f"/api/analytics/roi?site_id={quarry_a.id}")
        assert response.status_code == 200
        assert response.get_json()["has_investment_data"] is False

    def test_roi_with_investment(self, client, db_session, quarry_a):
        quarry_a.initial_investment = 50_000.0
        quarry_a.operations_start_date = date(2025, 1, 1)
        db_session.commit()

        response = client.get(f"/api/analytics/roi?site_id={quarry_a.id}&from=2025-01-01&to=2025-01-31")

        assert response.status_code == 200
        data = response.get_json()
        assert data["has_investment_data"] is True
        assert data["period"]["operating_days"] == 31
        assert "break_even" in data


class TestBreakdownReports:
    def test_expense_dashboard(self, client, db_session, quarry_a, make_sale, make_expense):
        make_sale(quarry_a, date(2025, 3, 10), quantity=100, price=50)
        make_expense(quarry_a, date(2025, 3, 10), 300.0, category="Repairs")
        url = f"/api/analytics/expense-dashboard?site_id={quarry_a.id}&from=2025-03-10&to=2025-03-10"

        manual = client.get(url)
        with_fees = client.get(url + "&include_auto=true")

        assert manual.status_code == 200
        assert manual.get_json()["total_expenses"] == 300.0
        assert manual.get_json()["categories"][0]["category"] == "Repairs"
        assert with_fees.get_json()["total_expenses"] == 1800.0
        assert with_fees.get_json()["top_category"] == "Loaders Fees"

    def test_cash_flow(self, client, db_session, quarry_a, make_sale):
        make_sale(quarry_a, date(2025, 3, 10), quantity=100, price=50, commission=2)

        response = client.get(f"/api/analytics/cash-flow?site_id={quarry_a.id}&from=2025-03-10&to=2025-03-10")

        assert response.status_code == 200
        steps = response.get_json()["steps"]
        assert steps[0] == {"label": "Sales Revenue", "value": 5000.0, "type": "positive"}
        assert steps[-1] == {"label": "Net Income", "value": 3300.0, "type": "total"}

    def test_cost_per_piece(self, client, db_session, quarry_a, make_sale):
        make_sale(quarry_a, date(2025, 3, 10), quantity=100, price=50, commission=2)

        response = client.get(f"/api/analytics/cost-per-piece?site_id={quarry_a.id}&from=2025-03-10&to=2025-03-10")

        assert response.status_code == 200
        assert response.get_json()["total_cost_per_piece"] == 17.0

    def test_product_profitability(self, client, db_session, quarry_a, make_sale):
        make_sale(quarry_a, date(2025, 3, 10), product="Hardcore", quantity=100, price=30)

        response = client.get(
            f"/api/analytics/product-profitability?site_id={quarry_a.id}&from=2025-03-10&to=2025-03-10"
        )

        assert response.status_code == 200
        (row,) = response.get_json()["rows"]
        assert row["product_name"] == "Hardcore"
        assert row["total_cost"] == 500.0
        assert row["net_profit"] == 2500.0

    def test_unknown_site(self, client, db_session):
        response = client.get("/api/analytics/cash-flow?site_id=999&from=2025-03-10&to=2025-03-10")
        assert response.status_code == 404

    def test_reversed_range(self, client, db_session, quarry_a):
        response = client.get(
            f"/api/analytics/product-profitability?site_id={quarry_a.id}&from=2025-03-10&to=2025-03-01"
        )
        assert response.status_code == 400


class TestSystemRoutes:
    def test_health(self, client, db_session, quarry_a):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["details"]["quarries"] == 1
        assert data["checks"]["analytics_cache"]["snapshot_locks"] == 0

    def test_version(self, client):
        response = client.get("/version")
        assert response.status_code == 200
        assert "api_version" in response.get_json()
