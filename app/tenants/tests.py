from django.contrib.auth import get_user_model
from django.test import RequestFactory, TestCase
from rest_framework import status
from rest_framework.request import Request
from rest_framework.test import APITestCase

from tenants.models import Tenant
from tenants.views import resolve_tenant
from workforce.models import Employee, Site


class ResolveTenantTests(TestCase):
    def setUp(self):
        self.tenant = Tenant.objects.create(name="Tenant A", code="tenant-a")
        self.factory = RequestFactory()

    def test_header_wins_over_query_param(self):
        Tenant.objects.create(name="Tenant B", code="tenant-b")
        request = Request(self.factory.get("/", {"tenant": "tenant-b"}, HTTP_X_TENANT_CODE="tenant-a"))
        self.assertEqual(resolve_tenant(request), self.tenant)

    def test_query_param_fallback(self):
        request = Request(self.factory.get("/", {"tenant": " tenant-a "}))
        self.assertEqual(resolve_tenant(request), self.tenant)

    def test_missing_or_unknown_code(self):
        self.assertIsNone(resolve_tenant(Request(self.factory.get("/"))))
        self.assertIsNone(resolve_tenant(Request(self.factory.get("/", HTTP_X_TENANT_CODE="ghost"))))


class TenantApiTests(APITestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="operator", password="pass")
        self.client.force_authenticate(self.user)
        self.tenant = Tenant.objects.create(name="Tenant A", code="tenant-a")
        Employee.objects.create(tenant=self.tenant, first_name="Aoife", geo_tracker_id="EVT0001")
        Employee.objects.create(tenant=self.tenant, first_name="Gone", is_deleted=True)
        Site.objects.create(tenant=self.tenant, site_code="S-001", site_name="Docklands")

    def test_list_includes_live_counts(self):
        response = self.client.get("/api/tenants/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]["code"], "tenant-a")
        self.assertEqual(response.data[0]["employee_count"], 1)
        self.assertEqual(response.data[0]["site_count"], 1)

    def test_detail_by_code(self):
        response = self.client.get("/api/tenants/tenant-a/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["name"], "Tenant A")

    def test_requires_authentication(self):
        self.client.force_authenticate(None)
        response = self.client.get("/api/tenants/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
