import csv
import io
import os
import sys
import threading
import unittest
from datetime import date
from typing import Any, Dict, List, Tuple
from unittest.mock import patch

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from ziwo_admin_ui import create_app  # noqa: E402
from ziwo_admin_ui.config import SESSION_KEY  # noqa: E402
from ziwo_admin_ui.services import export_jobs  # noqa: E402
from ziwo_admin_ui.services.resources import (  # noqa: E402
    AGENTS,
    QUEUES,
    ResourceClient,
)
from ziwo_admin_ui.services.session import Session  # noqa: E402
from ziwo_admin_ui.ziwo_client import (  # noqa: E402
    ApiRequestFailed,
    NetworkUnreachable,
)

app = create_app()


def queue_payload(count: int, offset: int = 0) -> Dict[str, Any]:
    return {
        "result": True,
        "content": [
            {
                "id": offset + index,
                "name": f"Queue {offset + index}",
                "agents": [{"firstName": "Ann", "lastName": "Lee"}],
            }
            for index in range(count)
        ],
    }


class LoggedInTestCase(unittest.TestCase):
    def setUp(self):
        self.client = app.test_client()
        self.login_as(Session(tenant_id="acme", username="ann", token="tok"))

    def login_as(self, session: Session) -> None:
        with self.client.session_transaction() as flask_session:
            flask_session[SESSION_KEY] = session.to_dict()


class IndexRouteTest(unittest.TestCase):
    def setUp(self):
        self.client = app.test_client()

    def test_login_form_shows_platform_domain(self):
        with patch.dict(os.environ, {"ZIWO_PLATFORM_DOMAIN": "aswat.co"}):
            response = self.client.get("/")

        self.assertEqual(response.status_code, 200)
        body = response.data.decode("utf-8")
        self.assertIn('name="tenant"', body)
        self.assertIn("-api.aswat.co", body)

    def test_dashboard_lists_resources_when_logged_in(self):
        with self.client.session_transaction() as flask_session:
            flask_session[SESSION_KEY] = {
                "tenant_id": "acme",
                "username": "ann",
                "token": "tok",
            }

        response = self.client.get("/")

        body = response.data.decode("utf-8")
        self.assertIn("ann", body)
        self.assertIn("/resources/agents", body)
        self.assertIn("/resources/queues", body)
        self.assertIn("/resources/numbers", body)

    def test_session_without_token_shows_login(self):
        with self.client.session_transaction() as flask_session:
            flask_session[SESSION_KEY] = {"tenant_id": "acme", "username": "ann"}

        response = self.client.get("/")

        self.assertIn('name="password"', response.data.decode("utf-8"))


class LoginRouteTest(unittest.TestCase):
    def setUp(self):
        self.client = app.test_client()

    def test_successful_login_stores_session(self):
        session = Session(tenant_id="acme", username="ann", token="tok-1")
        with patch(
            "ziwo_admin_ui.routes.auth.login", return_value=session
        ) as mock_login:
            response = self.client.post(
                "/login",
                data={"tenant": "acme", "username": "ann", "password": "pw"},
            )

        self.assertEqual(response.status_code, 302)
        credentials = mock_login.call_args.args[0]
        self.assertEqual(credentials.tenant_id, "acme")
        self.assertEqual(credentials.password, "pw")
        with self.client.session_transaction() as flask_session:
            self.assertEqual(flask_session[SESSION_KEY]["token"], "tok-1")

    def test_missing_field_is_rejected_without_calling_api(self):
        with patch("ziwo_admin_ui.routes.auth.login") as mock_login:
            response = self.client.post(
                "/login", data={"tenant": "acme", "username": "ann", "password": ""}
            )

        self.assertEqual(response.status_code, 400)
        self.assertIn("Password is required", response.data.decode("utf-8"))
        mock_login.assert_not_called()

    def test_invalid_tenant_is_rejected(self):
        with patch("ziwo_admin_ui.ziwo_client.requests.post") as mock_post:
            response = self.client.post(
                "/login",
                data={"tenant": "evil.com/x", "username": "ann", "password": "pw"},
            )

        self.assertEqual(response.status_code, 400)
        mock_post.assert_not_called()

    def test_rejected_credentials_render_error(self):
        failure = ApiRequestFailed(
            401, "auth/login", "Invalid login. Please check your credentials."
        )
        with patch("ziwo_admin_ui.routes.auth.login", side_effect=failure):
            response = self.client.post(
                "/login", data={"tenant": "acme", "username": "ann", "password": "x"}
            )

        self.assertEqual(response.status_code, 401)
        body = response.data.decode("utf-8")
        self.assertIn("check your credentials", body)
        self.assertIn('value="acme"', body)
        with self.client.session_transaction() as flask_session:
            self.assertNotIn(SESSION_KEY, flask_session)

    def test_unreachable_api_is_bad_gateway(self):
        failure = NetworkUnreachable("https://acme-api.aswat.co/auth/login")
        with patch("ziwo_admin_ui.routes.auth.login", side_effect=failure):
            response = self.client.post(
                "/login", data={"tenant": "acme", "username": "ann", "password": "x"}
            )

        self.assertEqual(response.status_code, 502)

    def test_logout_clears_session(self):
        with self.client.session_transaction() as flask_session:
            flask_session[SESSION_KEY] = {
                "tenant_id": "acme",
                "username": "ann",
                "token": "tok",
            }

        response = self.client.post("/logout")

        self.assertEqual(response.status_code, 302)
        with self.client.session_transaction() as flask_session:
            self.assertNotIn(SESSION_KEY, flask_session)


class BrowseRouteTest(LoggedInTestCase):
    def test_requires_login(self):
        client = app.test_client()

        response = client.get("/resources/queues")

        self.assertEqual(response.status_code, 302)

    def test_unknown_resource_is_not_found(self):
        response = self.client.get("/resources/calls")

        self.assertEqual(response.status_code, 404)

    def test_renders_projected_rows_and_next_link(self):
        with patch(
            "ziwo_admin_ui.services.resources.ziwo_get",
            return_value=queue_payload(50),
        ) as mock_get:
            response = self.client.get("/resources/queues?page=2")

        self.assertEqual(response.status_code, 200)
        params = mock_get.call_args.args[3]
        self.assertEqual(params, {"limit": 50, "offset": 50})
        body = response.data.decode("utf-8")
        self.assertIn("<th>Agent Names</th>", body)
        self.assertIn("Ann Lee", body)
        self.assertIn("page=3", body)
        self.assertIn("page=1", body)

    def test_short_page_has_no_next_link(self):
        with patch(
            "ziwo_admin_ui.services.resources.ziwo_get",
            return_value=queue_payload(3),
        ):
            response = self.client.get("/resources/queues")

        self.assertNotIn("page=2", response.data.decode("utf-8"))

    def test_api_failure_renders_error(self):
        failure = ApiRequestFailed(500, "admin/queues")
        with patch(
            "ziwo_admin_ui.services.resources.ziwo_get", side_effect=failure
        ):
            response = self.client.get("/resources/queues")

        self.assertEqual(response.status_code, 502)
        self.assertIn("HTTP 500", response.data.decode("utf-8"))

    def test_invalid_stored_tenant_forces_new_login(self):
        self.login_as(Session(tenant_id="bad.tenant", username="ann", token="tok"))

        with patch("ziwo_admin_ui.services.resources.ziwo_get") as mock_get:
            response = self.client.get("/resources/agents")

        self.assertEqual(response.status_code, 302)
        mock_get.assert_not_called()
        with self.client.session_transaction() as flask_session:
            self.assertNotIn(SESSION_KEY, flask_session)


class DirectExportRouteTest(LoggedInTestCase):
    def test_downloads_every_page_as_csv(self):
        pages = [queue_payload(50), queue_payload(50, 50), queue_payload(7, 100)]
        with patch(
            "ziwo_admin_ui.services.resources.ziwo_get", side_effect=pages
        ) as mock_get:
            response = self.client.get("/resources/queues/export")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.mimetype, "text/csv")
        expected_name = f"acme_queues_{date.today().isoformat()}.csv"
        self.assertIn(expected_name, response.headers["Content-Disposition"])
        self.assertEqual(mock_get.call_count, 3)
        rows = list(csv.reader(io.StringIO(response.data.decode("utf-8"))))
        self.assertEqual(len(rows), 1 + 107)
        self.assertEqual(rows[0][0], "Queue ID")
        self.assertEqual(rows[1][1], "Queue 0")
        self.assertEqual(rows[-1][0], "106")

    def test_failed_page_aborts_without_csv(self):
        pages = [queue_payload(50), ApiRequestFailed(503, "admin/queues")]
        with patch("ziwo_admin_ui.services.resources.ziwo_get", side_effect=pages):
            response = self.client.get("/resources/queues/export")

        self.assertEqual(response.status_code, 502)
        self.assertNotEqual(response.mimetype, "text/csv")


class ExportJobApiTest(LoggedInTestCase):
    def setUp(self):
        super().setUp()
        with export_jobs._EXPORT_JOB_LOCK:
            export_jobs._EXPORT_JOBS.clear()
            export_jobs._EXPORT_JOBS_BY_KEY.clear()
        threading_patch = patch("ziwo_admin_ui.services.export_jobs.threading")
        self.mock_threading = threading_patch.start()
        self.addCleanup(threading_patch.stop)

    def _start(self, resource: str = "queues"):
        return self.client.post("/api/exports", json={"resource": resource})

    def test_requires_login(self):
        client = app.test_client()

        response = client.post("/api/exports", json={"resource": "queues"})

        self.assertEqual(response.status_code, 401)
        self.mock_threading.Thread.assert_not_called()

    def test_rejects_unknown_resource(self):
        response = self._start("calls")

        self.assertEqual(response.status_code, 400)
        self.assertIn("agents, numbers, queues", response.get_json()["error"])

    def test_start_returns_poll_url_and_spawns_worker(self):
        response = self._start()

        self.assertEqual(response.status_code, 202)
        payload = response.get_json()
        self.assertEqual(payload["status"], "pending")
        self.assertEqual(payload["pollUrl"], f"/api/exports/{payload['jobId']}")
        self.mock_threading.Thread.assert_called_once()
        self.assertTrue(self.mock_threading.Thread.call_args.kwargs["daemon"])

    def test_second_request_reuses_running_job(self):
        first = self._start().get_json()
        second = self._start().get_json()
        other = self._start("agents").get_json()

        self.assertEqual(first["jobId"], second["jobId"])
        self.assertNotEqual(first["jobId"], other["jobId"])
        self.assertEqual(self.mock_threading.Thread.call_count, 2)

    def test_progress_and_download_after_completion(self):
        job_id = self._start().get_json()["jobId"]
        job = export_jobs.get_export_job(job_id)

        running = self.client.get(f"/api/exports/{job_id}/download")
        self.assertEqual(running.status_code, 409)

        pages = [queue_payload(2)]
        with patch("ziwo_admin_ui.services.resources.ziwo_get", side_effect=pages):
            export_jobs.run_export_job(job)

        status = self.client.get(f"/api/exports/{job_id}").get_json()
        self.assertEqual(status["status"], "completed")
        self.assertEqual(status["itemsSoFar"], 2)
        self.assertEqual(status["estimatedTotal"], 2)
        self.assertEqual(status["currentPage"], 1)
        self.assertEqual(status["downloadUrl"], f"/api/exports/{job_id}/download")

        download = self.client.get(status["downloadUrl"])
        self.assertEqual(download.status_code, 200)
        self.assertEqual(download.mimetype, "text/csv")
        self.assertIn(status["filename"], download.headers["Content-Disposition"])
        lines = download.data.decode("utf-8").split("\n")
        self.assertEqual(len(lines), 4)
        self.assertTrue(lines[0].startswith("Queue ID,Queue Name,"))
        self.assertEqual(lines[-1], "")

        again = self._start().get_json()
        self.assertNotEqual(again["jobId"], job_id)

    def test_failed_job_reports_error_and_never_serves_partial_csv(self):
        job_id = self._start("agents").get_json()["jobId"]
        job = export_jobs.get_export_job(job_id)
        agents = {
            "result": True,
            "content": [{"id": index} for index in range(50)],
        }
        pages = [agents, ApiRequestFailed(500, AGENTS.resource_path)]

        with patch("ziwo_admin_ui.services.resources.ziwo_get", side_effect=pages):
            export_jobs.run_export_job(job)

        status = self.client.get(f"/api/exports/{job_id}").get_json()
        self.assertEqual(status["status"], "failed")
        self.assertIn("admin/users", status["error"])
        self.assertNotIn("downloadUrl", status)
        self.assertIsNone(job.csv_text)
        download = self.client.get(f"/api/exports/{job_id}/download")
        self.assertEqual(download.status_code, 409)

    def test_jobs_are_private_to_their_session(self):
        job_id = self._start().get_json()["jobId"]
        self.login_as(Session(tenant_id="other", username="bob", token="tok2"))

        response = self.client.get(f"/api/exports/{job_id}")

        self.assertEqual(response.status_code, 404)

    def test_unknown_job_is_not_found(self):
        response = self.client.get("/api/exports/missing")

        self.assertEqual(response.status_code, 404)


class StatusRecordingLock:
    """Re-entrant lock that records the job status on every enter and exit."""

    def __init__(self, job):
        self._lock = threading.RLock()
        self._job = job
        self.events: List[Tuple[str, str]] = []

    def __enter__(self):
        self._lock.acquire()
        self.events.append(("enter", self._job.status))
        return self

    def __exit__(self, *exc_info):
        self.events.append(("exit", self._job.status))
        self._lock.release()
        return False


class RunExportJobTest(unittest.TestCase):
    def setUp(self):
        with export_jobs._EXPORT_JOB_LOCK:
            export_jobs._EXPORT_JOBS.clear()
            export_jobs._EXPORT_JOBS_BY_KEY.clear()
        session = Session(tenant_id="acme", username="ann", token="tok")
        with patch("ziwo_admin_ui.services.export_jobs.threading"):
            self.job = export_jobs.ensure_export_job(ResourceClient(QUEUES, session))

    def test_running_status_is_set_under_the_registry_lock(self):
        lock = StatusRecordingLock(self.job)
        seen_during_fetch: List[str] = []

        def fake_ziwo_get(*args, **kwargs):
            seen_during_fetch.append(self.job.status)
            return queue_payload(1)

        with patch.object(export_jobs, "_EXPORT_JOB_LOCK", lock), patch(
            "ziwo_admin_ui.services.resources.ziwo_get", side_effect=fake_ziwo_get
        ):
            export_jobs.run_export_job(self.job)

        self.assertEqual(lock.events[:2], [("enter", "pending"), ("exit", "running")])
        self.assertEqual(seen_during_fetch, ["running"])
        self.assertEqual(self.job.status, "completed")


class ExportJobCleanupTest(unittest.TestCase):
    def test_expired_jobs_are_discarded(self):
        with export_jobs._EXPORT_JOB_LOCK:
            export_jobs._EXPORT_JOBS.clear()
            export_jobs._EXPORT_JOBS_BY_KEY.clear()
        session = Session(tenant_id="acme", username="ann", token="tok")
        with patch("ziwo_admin_ui.services.export_jobs.threading"):
            job = export_jobs.ensure_export_job(ResourceClient(QUEUES, session))
        with patch(
            "ziwo_admin_ui.services.resources.ziwo_get",
            return_value={"result": True, "content": []},
        ):
            export_jobs.run_export_job(job)

        self.assertEqual(job.csv_text, "")
        job.completed_at -= export_jobs.EXPORT_JOB_TTL + 1
        self.assertIsNone(export_jobs.get_export_job(job.job_id))


if __name__ == "__main__":
    unittest.main()
