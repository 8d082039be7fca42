"""Tests for RestJobGateway URL/payload shaping against a mocked job API."""

import pytest
from unittest.mock import Mock
from aioresponses import aioresponses
from yarl import URL

from external_worker.adapters.aiohttp_client_adapter import AioHttpClientAdapter
from external_worker.adapters.rest_job_gateway import RestJobGateway, TransientGatewayError
from external_worker.adapters.retry_tenacity import TenacityRetryAdapter
from external_worker.core.exceptions import GatewayException
from external_worker.core.interfaces.logging import LoggingPort
from external_worker.core.models.requests import (
    AcquireJobParams,
    BpmnErrorJobParams,
    CmmnTerminateJobParams,
    CompleteJobParams,
    FailJobParams,
)
from external_worker.core.models.variable import EngineRestVariable

HOST = "http://localhost:8090"
API = f"{HOST}/external-job-api"
WORKER_ID = "test-worker"
JOB_ID = "JOB-36ebec96-360d-11ee-8300-0242c0a8d006"

JOB = {
    "id": "JOB-3728f5a5-360d-11ee-8300-0242c0a8d006",
    "url": f"{API}/jobs/JOB-3728f5a5-360d-11ee-8300-0242c0a8d006",
    "correlationId": "3728f5a4-360d-11ee-8300-0242c0a8d006",
    "processInstanceId": "3725e835-360d-11ee-8300-0242c0a8d006",
    "elementId": "externalWorkerTask",
    "elementName": "External worker task",
    "scopeType": "bpmn",
    "retries": 3,
    "createTime": "2023-08-08T09:12:02.532Z",
    "lockOwner": None,
    "lockExpirationTime": None,
    "tenantId": "",
}

ACQUIRED = [
    {
        "id": JOB_ID,
        "correlationId": "36ebec95-360d-11ee-8300-0242c0a8d006",
        "retries": 3,
        "lockOwner": WORKER_ID,
        "lockExpirationTime": "2023-08-08T09:13:02.532Z",
        "variables": [{"name": "initiator", "type": "string", "value": "admin"}],
    }
]


def _body(m, method, url):
    return m.requests[(method, URL(url))][-1].kwargs["json"]


def _gateway(client, retry_port=None):
    return RestJobGateway(client, flowable_host=HOST + "/", worker_id=WORKER_ID, retry_port=retry_port)


@pytest.mark.asyncio
async def test_list_jobs_returns_paged_result():
    with aioresponses() as m:
        m.get(f"{API}/jobs", payload={"data": [JOB], "total": 1, "start": 0, "sort": "id", "order": "asc", "size": 1})

        async with AioHttpClientAdapter() as client:
            result = await _gateway(client).list_jobs()

    assert result.total == 1
    assert result.data[0].id == JOB["id"]
    assert result.data[0].scopeType == "bpmn"


@pytest.mark.asyncio
async def test_list_jobs_with_invalid_authentication():
    with aioresponses() as m:
        m.get(f"{API}/jobs", status=401)

        async with AioHttpClientAdapter() as client:
            with pytest.raises(GatewayException) as excinfo:
                await _gateway(client).list_jobs()
    assert excinfo.value.response.status == 401


@pytest.mark.asyncio
async def test_get_job():
    with aioresponses() as m:
        m.get(f"{API}/jobs/{JOB['id']}", payload=JOB)

        async with AioHttpClientAdapter() as client:
            job = await _gateway(client).get_job(JOB["id"])

    assert job is not None
    assert job.correlationId == "3728f5a4-360d-11ee-8300-0242c0a8d006"


@pytest.mark.asyncio
async def test_get_unknown_job_returns_none():
    with aioresponses() as m:
        m.get(f"{API}/jobs/missing", status=404)

        async with AioHttpClientAdapter() as client:
            assert await _gateway(client).get_job("missing") is None


@pytest.mark.asyncio
async def test_acquire_with_default_params():
    url = f"{API}/acquire/jobs"
    with aioresponses() as m:
        m.post(url, payload=ACQUIRED)

        async with AioHttpClientAdapter() as client:
            jobs = await _gateway(client).acquire_jobs(
                AcquireJobParams(topic="myTopic", lockDuration="PT10S")
            )

        assert _body(m, "POST", url) == {
            "topic": "myTopic",
            "lockDuration": "PT10S",
            "numberOfTasks": 1,
            "numberOfRetries": 5,
            "workerId": WORKER_ID,
            "scopeType": None,
        }
    assert len(jobs) == 1
    assert jobs[0].id == JOB_ID
    assert jobs[0].variables == [EngineRestVariable(name="initiator", type="string", value="admin")]


@pytest.mark.asyncio
async def test_acquire_defaults_lock_duration():
    url = f"{API}/acquire/jobs"
    with aioresponses() as m:
        m.post(url, payload=[])

        async with AioHttpClientAdapter() as client:
            jobs = await _gateway(client).acquire_jobs(AcquireJobParams(topic="myTopic"))

        assert _body(m, "POST", url)["lockDuration"] == "PT1M"
    assert jobs == []


@pytest.mark.asyncio
async def test_acquire_with_custom_params():
    url = f"{API}/acquire/jobs"
    with aioresponses() as m:
        m.post(url, payload=ACQUIRED)

        async with AioHttpClientAdapter() as client:
            await _gateway(client).acquire_jobs(
                AcquireJobParams(
                    topic="myTopic",
                    lockDuration="PT10S",
                    numberOfTasks=2,
                    numberOfRetries=3,
                    scopeType="bpmn",
                    workerId="another-worker",
                )
            )

        assert _body(m, "POST", url) == {
            "topic": "myTopic",
            "lockDuration": "PT10S",
            "numberOfTasks": 2,
            "numberOfRetries": 3,
            "workerId": "another-worker",
            "scopeType": "bpmn",
        }


@pytest.mark.asyncio
async def test_complete_job_with_variables():
    url = f"{API}/acquire/jobs/{JOB_ID}/complete"
    with aioresponses() as m:
        m.post(url, status=204)

        async with AioHttpClientAdapter() as client:
            await _gateway(client).complete_job(
                CompleteJobParams(
                    jobId=JOB_ID,
                    variables=[EngineRestVariable(name="testVar", type="string", value="test content")],
                )
            )

        assert _body(m, "POST", url) == {
            "variables": [{"name": "testVar", "type": "string", "value": "test content", "valueUrl": None}],
            "workerId": WORKER_ID,
        }


@pytest.mark.asyncio
async def test_complete_job_with_error_500():
    url = f"{API}/acquire/jobs/{JOB_ID}/complete"
    with aioresponses() as m:
        m.post(url, status=500)

        async with AioHttpClientAdapter() as client:
            with pytest.raises(GatewayException) as excinfo:
                await _gateway(client).complete_job(CompleteJobParams(jobId=JOB_ID))

        assert _body(m, "POST", url) == {"variables": None, "workerId": WORKER_ID}
    assert excinfo.value.response.status == 500


@pytest.mark.asyncio
async def test_fail_job_omits_unset_fields():
    url = f"{API}/acquire/jobs/{JOB_ID}/fail"
    with aioresponses() as m:
        m.post(url, status=204)
        m.post(url, status=204)

        async with AioHttpClientAdapter() as client:
            gateway = _gateway(client)
            await gateway.fail_job(FailJobParams(jobId=JOB_ID, errorMessage="Some error message"))
            first = _body(m, "POST", url)
            await gateway.fail_job(
                FailJobParams(
                    jobId=JOB_ID,
                    errorMessage="boom",
                    errorDetails="trace",
                    retries=0,
                    retryTimeout="PT10M",
                    workerId="other",
                )
            )
            second = _body(m, "POST", url)

    assert first == {"workerId": WORKER_ID, "errorMessage": "Some error message"}
    assert second == {
        "workerId": "other",
        "errorMessage": "boom",
        "errorDetails": "trace",
        "retries": 0,
        "retryTimeout": "PT10M",
    }


@pytest.mark.asyncio
async def test_bpmn_error_job():
    url = f"{API}/acquire/jobs/{JOB_ID}/bpmnError"
    with aioresponses() as m:
        m.post(url, status=204)

        async with AioHttpClientAdapter() as client:
            await _gateway(client).bpmn_error_job(
                BpmnErrorJobParams(
                    jobId=JOB_ID,
                    errorCode="errorCode1",
                    variables=[EngineRestVariable(name="testVar", type="string", value="test failure")],
                )
            )

        assert _body(m, "POST", url) == {
            "variables": [{"name": "testVar", "type": "string", "value": "test failure", "valueUrl": None}],
            "errorCode": "errorCode1",
            "workerId": WORKER_ID,
        }


@pytest.mark.asyncio
async def test_cmmn_terminate_job():
    url = f"{API}/acquire/jobs/{JOB_ID}/cmmnTerminate"
    with aioresponses() as m:
        m.post(url, status=204)

        async with AioHttpClientAdapter() as client:
            await _gateway(client).cmmn_terminate_job(CmmnTerminateJobParams(jobId=JOB_ID))

        assert _body(m, "POST", url) == {"variables": None, "workerId": WORKER_ID}


class TestRetry:
    """Transient errors are retried when a retry port is installed; client errors are not."""

    @pytest.mark.asyncio
    async def test_retries_transient_error_then_succeeds(self):
        url = f"{API}/acquire/jobs/{JOB_ID}/complete"
        retry = TenacityRetryAdapter(attempts=3, wait_initial=0.001, wait_max=0.01)
        with aioresponses() as m:
            m.post(url, status=503)
            m.post(url, status=204)

            async with AioHttpClientAdapter() as client:
                gateway = _gateway(client, retry_port=retry)
                await gateway.complete_job(CompleteJobParams(jobId=JOB_ID))

            assert len(m.requests[("POST", URL(url))]) == 2

    @pytest.mark.asyncio
    async def test_retry_exhausted_raises_transient_error(self):
        url = f"{API}/acquire/jobs"
        retry = TenacityRetryAdapter(attempts=2, wait_initial=0.001, wait_max=0.01)
        with aioresponses() as m:
            m.post(url, status=502)
            m.post(url, status=502)

            async with AioHttpClientAdapter() as client:
                gateway = _gateway(client, retry_port=retry)
                with pytest.raises(TransientGatewayError) as excinfo:
                    await gateway.acquire_jobs(AcquireJobParams(topic="myTopic"))

            assert len(m.requests[("POST", URL(url))]) == 2
        assert excinfo.value.response.status == 502

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        url = f"{API}/acquire/jobs/{JOB_ID}/fail"
        retry = TenacityRetryAdapter(attempts=3, wait_initial=0.001, wait_max=0.01)
        with aioresponses() as m:
            m.post(url, status=404)

            async with AioHttpClientAdapter() as client:
                gateway = _gateway(client, retry_port=retry)
                with pytest.raises(GatewayException) as excinfo:
                    await gateway.fail_job(FailJobParams(jobId=JOB_ID))

            assert len(m.requests[("POST", URL(url))]) == 1
        assert not isinstance(excinfo.value, TransientGatewayError)
        assert excinfo.value.response.status == 404

    @pytest.mark.asyncio
    async def test_each_retry_is_logged(self):
        url = f"{API}/acquire/jobs"
        logger = Mock(spec=LoggingPort)
        retry = TenacityRetryAdapter(attempts=3, wait_initial=0.001, wait_max=0.01, logger=logger)
        with aioresponses() as m:
            m.post(url, status=504)
            m.post(url, status=503)
            m.post(url, status=200, payload=[])

            async with AioHttpClientAdapter() as client:
                jobs = await _gateway(client, retry_port=retry).acquire_jobs(
                    AcquireJobParams(topic="myTopic")
                )

        assert jobs == []
        assert logger.warning.call_count == 2
        assert "attempt 1/3" in logger.warning.call_args_list[0].args[0]
        assert "TransientGatewayError" in logger.warning.call_args_list[1].args[0]
