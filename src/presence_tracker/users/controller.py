from __future__ import annotations

from datetime import timedelta

from flask import Flask, session

from ..access.model import Principal
from ..common.http import current_scope, login_required, ok, payload
from ..common.validators import FieldErrors


def principal_to_dict(principal: Principal) -> dict:
    return {
        "id": principal.user_id,
        "name": principal.name,
        "role": principal.role.value,
        "company_id": principal.tenant_id,
        "is_active": principal.is_active,
    }


def register(app: Flask, container) -> None:
    auth = container.auth_service

    @app.route("/auth/login", methods=["POST"], endpoint="auth_login")
    def auth_login():
        data = payload()
        errors = FieldErrors()
        email = errors.string(data, "email", required=True)
        password = data.get("password")
        if not password:
            errors.add("password", "This field is required.")
        remember = errors.boolean(data, "remember_me", default=False)
        errors.raise_if_any()

        principal = auth.authenticate(email, password)

        session.clear()
        session.permanent = bool(remember)
        app.permanent_session_lifetime = timedelta(days=7)
        session["user_id"] = principal.user_id
        session["role"] = principal.role.value

        return ok(
            {"user": principal_to_dict(principal), "token": auth.issue_token(principal), "token_type": "Bearer"},
            "Login successful",
        )

    @app.route("/auth/logout", methods=["POST"], endpoint="auth_logout")
    def auth_logout():
        session.clear()
        return ok(message="Successfully logged out")

    @app.route("/auth/me", methods=["GET"], endpoint="auth_me")
    @login_required
    def auth_me():
        return ok(principal_to_dict(current_scope().principal))
