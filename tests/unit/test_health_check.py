import json

from handlers import health_check


def test_health_check_returns_ok():
    resp = health_check.lambda_handler({}, None)
    assert resp["statusCode"] == 200
    body = json.loads(resp["body"])
    assert body["status"] == "ok"
    assert body["service"] == "customer-analytics"


def test_health_check_reports_database_configuration(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("DB_SECRET_ARN", raising=False)
    body = json.loads(health_check.lambda_handler({}, None)["body"])
    assert body["database"] == "not configured"

    monkeypatch.setenv("DB_SECRET_ARN", "arn:aws:secretsmanager:eu-west-2:123:secret:db")
    body = json.loads(health_check.lambda_handler({}, None)["body"])
    assert body["database"] == "configured"
