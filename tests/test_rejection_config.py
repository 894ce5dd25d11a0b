import pytest
from pydantic import ValidationError

from app.workflow.config import (
    StageRejectionConfig,
    WorkflowConfigData,
    get_effective_rejection_config,
    system_default_rejection_config,
)


def _config(**overrides):
    data = {
        "config_id": "WF-ORDER-TEST",
        "company_id": 1,
        "entity_type": "ORDER",
        "workflow_name": "Test",
        "stages": [
            {
                "stage_key": "LOCATION_APPROVAL",
                "stage_name": "Location",
                "order": 1,
                "allowed_roles": ["LOCATION_ADMIN"],
            },
            {
                "stage_key": "COMPANY_APPROVAL",
                "stage_name": "Company",
                "order": 2,
                "allowed_roles": ["company_admin"],
                "is_terminal": True,
            },
        ],
    }
    data.update(overrides)
    return WorkflowConfigData.model_validate(data)


def test_system_defaults():
    rc = system_default_rejection_config()

    assert rc.is_terminal_on_reject is True
    assert rc.is_reason_code_mandatory is True
    assert rc.is_remarks_mandatory is False
    assert rc.max_remarks_length == 2000
    assert rc.resubmission_strategy == "NEW_ENTITY"
    assert rc.notify_roles_on_reject == ["REQUESTOR"]
    assert rc.rejected_status == "REJECTED"


def test_no_config_gives_defaults():
    assert get_effective_rejection_config(None, "ANY") == system_default_rejection_config()


def test_global_then_stage_precedence():
    config = _config(
        rejection_config={
            "default_is_terminal_on_reject": False,
            "default_is_remarks_mandatory": True,
            "default_notify_roles_on_reject": ["REQUESTOR", "COMPANY_ADMIN"],
        },
    )
    config.stages[1].rejection_config = StageRejectionConfig(is_terminal_on_reject=True)

    location = get_effective_rejection_config(config, "LOCATION_APPROVAL")
    assert location.is_terminal_on_reject is False
    assert location.is_remarks_mandatory is True
    assert location.notify_roles_on_reject == ["REQUESTOR", "COMPANY_ADMIN"]

    company = get_effective_rejection_config(config, "COMPANY_APPROVAL")
    assert company.is_terminal_on_reject is True
    # untouched by the stage, still inherited from the workflow
    assert company.is_remarks_mandatory is True


def test_null_stage_values_inherit():
    config = _config()
    stages = [s.model_dump() for s in config.stages]
    stages[0]["rejection_config"] = {"is_remarks_mandatory": None, "max_remarks_length": 100}
    config = _config(stages=stages)

    rc = get_effective_rejection_config(config, "LOCATION_APPROVAL")

    assert rc.is_remarks_mandatory is False
    assert rc.max_remarks_length == 100


def test_roles_are_normalized():
    config = _config()
    assert config.stages[1].allowed_roles == ["COMPANY_ADMIN"]
    assert config.is_terminal("COMPANY_APPROVAL") is True
    assert config.next_stage("LOCATION_APPROVAL").stage_key == "COMPANY_APPROVAL"


@pytest.mark.parametrize(
    "overrides",
    [
        {"config_id": "bad id!"},
        {"entity_type": "TIMESHEET"},
        {"stages": []},
    ],
)
def test_invalid_configs(overrides):
    with pytest.raises(ValidationError):
        _config(**overrides)


def test_exactly_one_terminal_stage():
    config = _config()
    stages = [s.model_dump() for s in config.stages]
    stages[0]["is_terminal"] = True
    with pytest.raises(ValidationError):
        _config(stages=stages)


def test_unknown_resubmission_strategy():
    config = _config()
    stages = [s.model_dump() for s in config.stages]
    stages[0]["rejection_config"] = {"resubmission_strategy": "SOMETIMES"}
    with pytest.raises(ValidationError):
        _config(stages=stages)
