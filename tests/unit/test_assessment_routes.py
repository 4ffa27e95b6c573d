"""Tests for assessment API endpoints."""

from app.core.exceptions import InsufficientPermissions, UpstreamError


class TestCreateAssessmentEndpoint:
    def test_create_returns_201_with_real_data_flag(self, client, customer, mock_directory, license_report, secure_score):
        mock_directory.fetch_license_report.return_value = license_report
        mock_directory.fetch_secure_score.return_value = secure_score

        response = client.post(
            "/api/assessment/create",
            json={
                "customerId": customer.id,
                "includedCategories": ["license", "secureScore", "identity"],
                "assessmentName": "Quarterly review",
                "notificationEmail": "secops@contoso.com",
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["realData"] is True
        assert body["data"]["id"].startswith("assessment-")
        assert body["data"]["customerId"] == customer.id
        assert body["data"]["assessmentName"] == "Quarterly review"
        assert body["data"]["status"] == "completed"
        assert body["data"]["overallScore"] == 30

    def test_missing_customer_id_is_400(self, client):
        response = client.post("/api/assessment/create", json={"includedCategories": ["license"]})
        assert response.status_code == 400
        body = response.json()
        assert body == {
            "success": False,
            "error": "CustomerIdRequired",
            "detail": "customerId is required",
        }

    def test_unknown_customer_is_404(self, client):
        response = client.post("/api/assessment/create", json={"customerId": "customer-nope"})
        assert response.status_code == 404
        assert response.json()["error"] == "CustomerNotFound"

    def test_incomplete_credentials_is_400(self, client, customer_without_credentials):
        response = client.post(
            "/api/assessment/create", json={"customerId": customer_without_credentials.id}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "CredentialsIncomplete"

    def test_unknown_category_is_rejected(self, client, customer):
        response = client.post(
            "/api/assessment/create",
            json={"customerId": customer.id, "includedCategories": ["payroll"]},
        )
        assert response.status_code == 422

    def test_upstream_failures_still_return_201(self, client, customer, mock_directory):
        mock_directory.fetch_license_report.side_effect = UpstreamError("Graph API returned 503")
        mock_directory.fetch_secure_score.side_effect = InsufficientPermissions("403")

        response = client.post("/api/assessment/create", json={"customerId": customer.id})

        assert response.status_code == 201
        body = response.json()
        assert body["realData"] is False
        assert body["data"]["status"] == "completed-limited-data"
        assert "dataIssue" in body["data"]["metrics"]


class TestSaveAssessmentEndpoint:
    def test_create_then_update(self, client, customer):
        created = client.post(
            "/api/save-assessment",
            json={"customerId": customer.id, "score": 55, "status": "incomplete"},
        )
        assert created.status_code == 200
        assessment_id = created.json()["data"]["id"]

        updated = client.post(
            "/api/save-assessment",
            json={"id": assessment_id, "customerId": customer.id, "score": 75, "status": "completed"},
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["overallScore"] == 75

        history = client.get(f"/api/assessment-history?tenantId={customer.tenant_id}")
        assert history.json()["count"] == 2

    def test_update_unknown_is_404(self, client, customer):
        response = client.post(
            "/api/save-assessment",
            json={"id": "assessment-missing", "customerId": customer.id, "score": 10},
        )
        assert response.status_code == 404
        assert response.json()["error"] == "AssessmentNotFound"

    def test_scalar_metrics_score(self, client, customer):
        response = client.post(
            "/api/save-assessment",
            json={"customerId": customer.id, "score": 72, "metrics": {"score": 72}},
        )
        assert response.status_code == 200
        assert response.json()["data"]["overallScore"] == 72

    def test_repeated_id_without_customer_is_409(self, client):
        body = {"id": "assessment-fixed", "tenantId": "tenant-x", "score": 40}
        assert client.post("/api/save-assessment", json=body).status_code == 200

        response = client.post("/api/save-assessment", json=body)

        assert response.status_code == 409
        payload = response.json()
        assert payload["error"] == "AlreadyExists"
        assert "SQL" not in payload["detail"]


class TestHistoryEndpoints:
    def _seed(self, client, customer, scores):
        for score in scores:
            client.post("/api/save-assessment", json={"customerId": customer.id, "score": score})

    def test_history_by_tenant_query(self, client, customer):
        self._seed(client, customer, [10, 20, 30])

        response = client.get(f"/api/assessment-history?tenantId={customer.tenant_id}&limit=2")

        assert response.status_code == 200
        data = response.json()["data"]
        assert [entry["overallScore"] for entry in data] == [30, 20]
        assert data[0]["tenantId"] == customer.tenant_id

    def test_history_path_variants(self, client, customer):
        self._seed(client, customer, [40])

        by_tenant = client.get(f"/api/assessment-history/{customer.tenant_id}")
        by_customer = client.get(f"/api/assessment-history/customer/{customer.id}")

        assert by_tenant.json()["count"] == 1
        assert by_customer.json()["count"] == 1
        assert by_tenant.json()["data"][0]["id"] == by_customer.json()["data"][0]["id"]

    def test_oversized_limit_is_capped(self, client, customer):
        response = client.get(f"/api/assessment-history?tenantId={customer.tenant_id}&limit=1000")
        assert response.status_code == 200


class TestMetricsEndpoint:
    def test_missing_tenant_id_is_400(self, client):
        response = client.get("/api/GetMetrics")
        assert response.status_code == 400
        assert response.json()["error"] == "TenantIdRequired"

    def test_no_assessment_yet(self, client):
        response = client.get("/api/GetMetrics?tenantId=tenant-unknown")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["hasAssessment"] is False
        assert data["score"]["overall"] == 0

    def test_latest_assessment(self, client, customer, mock_directory, license_report):
        mock_directory.fetch_license_report.return_value = license_report
        client.post(
            "/api/assessment/create",
            json={"customerId": customer.id, "includedCategories": ["license"]},
        )

        data = client.get(f"/api/GetMetrics?tenantId={customer.tenant_id}").json()["data"]

        assert data["hasAssessment"] is True
        assert data["score"]["overall"] == 65
        assert data["recommendations"]


class TestListAssessments:
    def test_list_is_cached_until_a_write(self, client, customer):
        client.post("/api/save-assessment", json={"customerId": customer.id, "score": 10})
        assert client.get("/api/assessments").json()["count"] == 1

        client.post("/api/save-assessment", json={"customerId": customer.id, "score": 20})
        assert client.get("/api/assessments").json()["count"] == 2

    def test_filter_by_customer_and_status(self, client, customer):
        client.post("/api/save-assessment", json={"customerId": customer.id, "score": 10, "status": "failed"})
        client.post("/api/save-assessment", json={"customerId": customer.id, "score": 20})

        response = client.get(f"/api/assessments?customerId={customer.id}&status=failed")
        assert response.json()["count"] == 1

    def test_get_single_assessment(self, client, customer):
        created = client.post("/api/save-assessment", json={"customerId": customer.id, "score": 10})
        assessment_id = created.json()["data"]["id"]

        assert client.get(f"/api/assessments/{assessment_id}").status_code == 200
        assert client.get("/api/assessments/assessment-missing").status_code == 404
