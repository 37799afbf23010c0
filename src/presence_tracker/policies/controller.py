from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import format_time_of_day
from ..common.http import current_scope, login_required, ok, page_request, paginated, payload
from ..common.validators import FieldErrors
from .model import WindowBounds, WindowPolicy


def policy_to_dict(policy: WindowPolicy) -> dict:
    return {
        "id": policy.policy_id,
        "company_id": policy.tenant_id,
        "checkin_start": format_time_of_day(policy.checkin_start),
        "checkin_end": format_time_of_day(policy.checkin_end),
        "checkout_start": format_time_of_day(policy.checkout_start),
        "checkout_end": format_time_of_day(policy.checkout_end),
        "checkin_window": policy.checkin_window,
        "checkout_window": policy.checkout_window,
        "is_active": policy.is_active,
        "created_at": policy.created_at.isoformat() if policy.created_at else None,
        "updated_at": policy.updated_at.isoformat() if policy.updated_at else None,
    }


def _bounds_from(data: dict, errors: FieldErrors) -> WindowBounds:
    values = {
        name: errors.time_of_day(data, name, required=True)
        for name in ("checkin_start", "checkin_end", "checkout_start", "checkout_end")
    }
    errors.raise_if_any()
    return WindowBounds(**values)


def register(app: Flask, container) -> None:
    service = container.policy_service

    @app.route("/presence-configs", methods=["GET"], endpoint="policies_index")
    @login_required
    def policies_index():
        errors = FieldErrors()
        company_id = errors.integer(request.args, "company_id")
        is_active = errors.boolean(request.args, "is_active")
        errors.raise_if_any()

        page = service.list(
            current_scope(),
            tenant_id=company_id,
            is_active=is_active,
            page=page_request(),
        )
        return ok(paginated(page, [policy_to_dict(p) for p in page.items]))

    @app.route("/presence-configs", methods=["POST"], endpoint="policies_store")
    @login_required
    def policies_store():
        scope = current_scope()
        data = payload()
        errors = FieldErrors()
        company_id = errors.integer(data, "company_id", required=scope.is_super_admin)
        is_active = errors.boolean(data, "is_active", default=True)
        bounds = _bounds_from(data, errors)

        tenant_id = company_id if company_id is not None else scope.principal.tenant_id
        policy = service.create(scope, tenant_id=tenant_id, bounds=bounds, is_active=is_active)
        return ok(policy_to_dict(policy), "Presence configuration created successfully", 201)

    @app.route("/presence-configs/active", methods=["GET"], endpoint="policies_active")
    @login_required
    def policies_active():
        errors = FieldErrors()
        company_id = errors.integer(request.args, "company_id")
        errors.raise_if_any()

        policy = service.active_for(current_scope(), company_id)
        return ok(policy_to_dict(policy))

    @app.route("/presence-configs/<int:policy_id>", methods=["GET"], endpoint="policies_show")
    @login_required
    def policies_show(policy_id: int):
        return ok(policy_to_dict(service.get(current_scope(), policy_id)))

    @app.route("/presence-configs/<int:policy_id>", methods=["PUT"], endpoint="policies_update")
    @login_required
    def policies_update(policy_id: int):
        data = payload()
        errors = FieldErrors()
        is_active = errors.boolean(data, "is_active")
        bounds = _bounds_from(data, errors)

        policy = service.update(current_scope(), policy_id, bounds=bounds, is_active=is_active)
        return ok(policy_to_dict(policy), "Presence configuration updated successfully")

    @app.route("/presence-configs/<int:policy_id>", methods=["DELETE"], endpoint="policies_destroy")
    @login_required
    def policies_destroy(policy_id: int):
        service.delete(current_scope(), policy_id)
        return ok(message="Presence configuration deleted successfully")

    @app.route("/presence-configs/<int:policy_id>/activate", methods=["PATCH"], endpoint="policies_activate")
    @login_required
    def policies_activate(policy_id: int):
        policy = service.activate(current_scope(), policy_id)
        return ok(policy_to_dict(policy), "Presence configuration activated successfully")

    @app.route("/presence-configs/<int:policy_id>/deactivate", methods=["PATCH"], endpoint="policies_deactivate")
    @login_required
    def policies_deactivate(policy_id: int):
        policy = service.deactivate(current_scope(), policy_id)
        return ok(policy_to_dict(policy), "Presence configuration deactivated successfully")

    @app.route("/presence-configs/<int:policy_id>/toggle-status", methods=["PATCH"], endpoint="policies_toggle")
    @login_required
    def policies_toggle(policy_id: int):
        policy = service.toggle(current_scope(), policy_id)
        state = "activated" if policy.is_active else "deactivated"
        return ok(policy_to_dict(policy), f"Presence configuration {state} successfully")
