"""Reliability pillar checks over a subject's CloudFormation stack and function code.

Each routine takes (subject_id, target, credentials) and returns a mapping with
an `implemented` flag and check details. The template is read with the
subject's assumed-role credentials, so a routine only ever sees the one
environment it was given.

The code checks download each stack function's deployment package and look for
reliability patterns in its source files.
"""

import io
import json
import zipfile

import boto3
import httpx

DYNAMODB_TABLE = "AWS::DynamoDB::Table"
GLOBAL_TABLE = "AWS::DynamoDB::GlobalTable"
LAMBDA_FUNCTION = "AWS::Lambda::Function"
SQS_QUEUE = "AWS::SQS::Queue"
CLOUDWATCH_ALARM = "AWS::CloudWatch::Alarm"
HEALTH_CHECK = "AWS::Route53::HealthCheck"
API_ROUTE_TYPES = ("AWS::ApiGateway::Resource", "AWS::ApiGatewayV2::Route")

CODE_SUFFIXES = (".js", ".mjs", ".cjs", ".ts", ".py")
CODE_DOWNLOAD_TIMEOUT_SECONDS = 10.0


def _template(target, credentials) -> dict:
    cloudformation = boto3.client("cloudformation", **credentials.client_kwargs(target.region))
    body = cloudformation.get_template(StackName=target.stack_name)["TemplateBody"]
    # JSON templates come back already decoded
    if isinstance(body, dict):
        return body
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        msg = f"Template for {target.stack_name} is not JSON"
        raise ValueError(msg) from e


def _resources(template: dict, resource_type: str | tuple) -> dict:
    types = (resource_type,) if isinstance(resource_type, str) else resource_type
    return {
        logical_id: resource
        for logical_id, resource in (template.get("Resources") or {}).items()
        if resource.get("Type") in types
    }


def _properties(resource: dict) -> dict:
    return resource.get("Properties") or {}


def check_backup(subject_id, target, credentials):
    """DynamoDB tables with point-in-time recovery enabled."""
    tables = _resources(_template(target, credentials), DYNAMODB_TABLE)
    protected = sorted(
        logical_id
        for logical_id, table in tables.items()
        if (_properties(table).get("PointInTimeRecoverySpecification") or {}).get(
            "PointInTimeRecoveryEnabled"
        )
        is True
    )
    return {
        "implemented": len(protected) > 0,
        "details": {
            "tables": sorted(tables),
            "pitr_enabled": protected,
            "message": f"{len(protected)} of {len(tables)} tables have point-in-time recovery",
        },
    }


def check_multi_region(subject_id, target, credentials):
    """Resources configured for another region, or DynamoDB global tables."""
    template = _template(target, credentials)
    regional = sorted(
        logical_id
        for logical_id, resource in (template.get("Resources") or {}).items()
        if _properties(resource).get("Region")
    )
    global_tables = sorted(_resources(template, GLOBAL_TABLE))
    return {
        "implemented": bool(regional or global_tables),
        "details": {"regional_resources": regional, "global_tables": global_tables},
    }


def check_dlq(subject_id, target, credentials):
    """Functions with a dead-letter target, or queues with a redrive policy."""
    template = _template(target, credentials)
    functions = sorted(
        logical_id
        for logical_id, fn in _resources(template, LAMBDA_FUNCTION).items()
        if (_properties(fn).get("DeadLetterConfig") or {}).get("TargetArn")
    )
    queues = sorted(
        logical_id
        for logical_id, queue in _resources(template, SQS_QUEUE).items()
        if _properties(queue).get("RedrivePolicy")
    )
    return {
        "implemented": bool(functions or queues),
        "details": {"functions_with_dlq": functions, "queues_with_redrive": queues},
    }


def check_alarms(subject_id, target, credentials):
    """At least one CloudWatch alarm defined in the stack."""
    alarms = _resources(_template(target, credentials), CLOUDWATCH_ALARM)
    return {
        "implemented": len(alarms) > 0,
        "details": {
            "alarms": sorted(alarms),
            "metrics": sorted(
                {_properties(a).get("MetricName", "") for a in alarms.values()} - {""}
            ),
        },
    }


def check_health_check(subject_id, target, credentials):
    """A Route 53 health check or an API route serving /health."""
    template = _template(target, credentials)
    health_checks = sorted(_resources(template, HEALTH_CHECK))
    routes = []
    for logical_id, resource in _resources(template, API_ROUTE_TYPES).items():
        props = _properties(resource)
        path = str(props.get("PathPart") or props.get("RouteKey") or "")
        if "health" in path.lower():
            routes.append(logical_id)
    return {
        "implemented": bool(health_checks or routes),
        "details": {"health_checks": health_checks, "health_routes": sorted(routes)},
    }


def _stack_functions(target, credentials) -> list[str]:
    """Physical names of the Lambda functions deployed by the subject's stack."""
    cloudformation = boto3.client("cloudformation", **credentials.client_kwargs(target.region))
    paginator = cloudformation.get_paginator("list_stack_resources")
    names = set()
    for page in paginator.paginate(StackName=target.stack_name):
        for summary in page.get("StackResourceSummaries", []):
            if summary.get("ResourceType") == LAMBDA_FUNCTION and summary.get(
                "PhysicalResourceId"
            ):
                names.add(summary["PhysicalResourceId"])
    return sorted(names)


def _package_source(content: bytes) -> str:
    try:
        archive = zipfile.ZipFile(io.BytesIO(content))
    except zipfile.BadZipFile:
        return content.decode("utf-8", errors="replace")

    with archive:
        return "\n".join(
            archive.read(name).decode("utf-8", errors="replace")
            for name in archive.namelist()
            if name.endswith(CODE_SUFFIXES) and "node_modules/" not in name
        )


def _function_sources(target, credentials) -> dict[str, str]:
    """Source text of every stack function, keyed by function name."""
    functions = _stack_functions(target, credentials)
    if not functions:
        return {}

    lambda_client = boto3.client("lambda", **credentials.client_kwargs(target.region))
    sources = {}
    for name in functions:
        location = lambda_client.get_function(FunctionName=name).get("Code", {}).get("Location")
        if not location:
            sources[name] = ""
            continue
        response = httpx.get(location, timeout=CODE_DOWNLOAD_TIMEOUT_SECONDS)
        response.raise_for_status()
        sources[name] = _package_source(response.content)
    return sources


def _analyse_code(target, credentials, scan, pattern: str) -> dict:
    sources = _function_sources(target, credentials)
    findings = {name: scan(code) for name, code in sources.items()}
    matched = sorted(name for name, found in findings.items() if found["implemented"])
    return {
        "implemented": len(matched) > 0,
        "details": {
            "functions": sorted(sources),
            "matched": matched,
            "findings": findings,
            "message": f"{len(matched)} of {len(sources)} functions implement {pattern}",
        },
    }


def _error_handling(code: str) -> dict:
    return {
        "implemented": "try" in code and ("catch" in code or "except" in code),
        "error_logging": any(
            marker in code for marker in ("console.error", "logger.error", "logger.exception")
        ),
        "error_responses": any(
            marker in code
            for marker in ("statusCode: 500", "statusCode: 400", '"statusCode": 500')
        ),
    }


def _retry_logic(code: str) -> dict:
    lowered = code.lower()
    return {
        "implemented": "retry" in lowered or ("attempt" in code and "maxAttempts" in code),
        "backoff": "backoff" in lowered or ("setTimeout" in code and "Math.pow" in code),
    }


def _circuit_breaker(code: str) -> dict:
    lowered = code.lower()
    return {
        "implemented": "circuitbreaker" in lowered
        or ("circuit" in lowered and "breaker" in lowered)
    }


def _idempotency(code: str) -> dict:
    token = "idempotency" in code.lower() or "requestId" in code
    conditional = "ConditionExpression" in code or "attribute_not_exists" in code
    return {
        "implemented": token or conditional,
        "idempotency_token": token,
        "conditional_write": conditional,
    }


def _async_processing(code: str) -> dict:
    services = {
        "sqs": "SQS" in code or "sendMessage" in code or "send_message" in code,
        "sns": "SNS" in code or "publish" in code,
        "eventbridge": "EventBridge" in code or "putEvents" in code or "put_events" in code,
    }
    return {
        "implemented": any(services.values()),
        "services": sorted(name for name, used in services.items() if used),
    }


def check_error_handling(subject_id, target, credentials):
    """Function code catches errors."""
    return _analyse_code(target, credentials, _error_handling, "error handling")


def check_retry_logic(subject_id, target, credentials):
    """Function code retries failed calls."""
    return _analyse_code(target, credentials, _retry_logic, "retry logic")


def check_circuit_breaker(subject_id, target, credentials):
    """Function code guards a dependency with a circuit breaker."""
    return _analyse_code(target, credentials, _circuit_breaker, "a circuit breaker")


def check_idempotency(subject_id, target, credentials):
    """Function code uses idempotency tokens or conditional writes."""
    return _analyse_code(target, credentials, _idempotency, "idempotency")


def check_async_processing(subject_id, target, credentials):
    """Function code hands work off through SQS, SNS or EventBridge."""
    return _analyse_code(target, credentials, _async_processing, "asynchronous processing")


ROUTINES = {
    "checkBackup": check_backup,
    "checkMultiRegion": check_multi_region,
    "checkDLQ": check_dlq,
    "checkAlarms": check_alarms,
    "checkHealthCheck": check_health_check,
    "checkErrorHandling": check_error_handling,
    "checkRetryLogic": check_retry_logic,
    "checkCircuitBreaker": check_circuit_breaker,
    "checkIdempotency": check_idempotency,
    "checkAsyncProcessing": check_async_processing,
}
