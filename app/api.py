"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    Automation,
    AutomationCreated,
    AutomationEnabledUpdate,
    AutomationPayload,
    BoardWriteResultOut,
    ExportedLogEntry,
    LatestStateResponse,
    LogEntryOut,
    LogPageResponse,
    ReadingOut,
    ReadingWriteRequest,
    SensorAddRequest,
    SensorSelectionResponse,
    SeriesOut,
    SeriesResponse,
    WriteReportResponse,
)
from datastore.sensor_selection import SensorSelectionStore, build_default_selection_store
from models.boards import FIELDS_BY_KEY, NUMERIC_SENSOR_FIELDS, parse_board
from services.aligner import format_chart_label
from services.automations import AutomationService
from services.dashboard import DashboardService, build_default_dashboard
from services.log_query import export_logs, filter_logs, paginate
from settings import get_settings

router = APIRouter()


def get_dashboard() -> DashboardService:
    return build_default_dashboard()


def get_selection_store() -> SensorSelectionStore:
    return build_default_selection_store()


def get_automation_service(
    dashboard: DashboardService = Depends(get_dashboard),
) -> AutomationService:
    return AutomationService(dashboard.automation_store)


def _active_sensors(
    selection: SensorSelectionStore, instance: str, sensors: Optional[List[str]]
) -> List[str]:
    return list(sensors) if sensors else selection.get(instance)


def _not_found(exc: KeyError) -> HTTPException:
    detail = exc.args[0] if exc.args else str(exc)
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


@router.get(
    "/state/latest",
    response_model=LatestStateResponse,
    summary="Composite latest values across the three boards.",
)
async def latest_state(
    dashboard: DashboardService = Depends(get_dashboard),
) -> LatestStateResponse:
    latest = dashboard.state.latest
    return LatestStateResponse(values=dict(latest.values), timestamp=latest.timestamp)


@router.get(
    "/boards/{board}/readings",
    response_model=List[ReadingOut],
    summary="Readings of one board, oldest first.",
)
async def board_readings(
    board: str,
    dashboard: DashboardService = Depends(get_dashboard),
) -> List[ReadingOut]:
    try:
        board_type = parse_board(board)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return [
        ReadingOut(id=reading.id, board=reading.board, timestamp=reading.timestamp, data=dict(reading.fields))
        for reading in dashboard.state.readings(board_type)
    ]


@router.post(
    "/readings",
    response_model=WriteReportResponse,
    summary="Write new readings or control states for the active sensors.",
)
def create_reading(
    request: ReadingWriteRequest,
    dashboard: DashboardService = Depends(get_dashboard),
    selection: SensorSelectionStore = Depends(get_selection_store),
) -> WriteReportResponse:
    sensors = _active_sensors(selection, request.instance, request.active_sensors)
    if not sensors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No active sensors for instance {request.instance!r}.",
        )
    report = dashboard.create_reading(request.updates, sensors)
    return WriteReportResponse(
        results=[
            BoardWriteResultOut(
                board=result.board,
                document=result.document,
                reading_id=result.reading_id,
                error=result.error,
            )
            for result in report.results
        ]
    )


@router.get(
    "/logs",
    response_model=LogPageResponse,
    summary="Merged board log filtered to the active sensors.",
)
async def list_logs(
    instance: str = "1",
    sensors: Optional[List[str]] = Query(default=None),
    search: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    page: int = Query(default=1, ge=1),
    per_page: Optional[int] = Query(default=None, ge=1),
    dashboard: DashboardService = Depends(get_dashboard),
    selection: SensorSelectionStore = Depends(get_selection_store),
) -> LogPageResponse:
    entries = filter_logs(
        dashboard.state.merged_logs,
        _active_sensors(selection, instance, sensors),
        search=search,
        start=start,
        end=end,
    )
    result = paginate(entries, page=page, per_page=per_page or get_settings().log_page_size)
    return LogPageResponse(
        entries=[
            LogEntryOut(
                id=entry.id,
                board=entry.board,
                time=entry.time,
                time_display=entry.time_display,
                action=entry.action,
            )
            for entry in result.entries
        ],
        page=result.page,
        per_page=result.per_page,
        total=result.total,
        total_pages=result.total_pages,
    )


@router.get(
    "/logs/export",
    response_model=List[ExportedLogEntry],
    summary="Every log entry relevant to the active sensors.",
)
async def export_log_entries(
    instance: str = "1",
    sensors: Optional[List[str]] = Query(default=None),
    dashboard: DashboardService = Depends(get_dashboard),
    selection: SensorSelectionStore = Depends(get_selection_store),
) -> List[ExportedLogEntry]:
    entries = filter_logs(dashboard.state.merged_logs, _active_sensors(selection, instance, sensors))
    return [ExportedLogEntry(**item) for item in export_logs(entries)]


@router.get(
    "/series",
    response_model=SeriesResponse,
    summary="Numeric sensor series aligned on a shared timeline.",
)
async def aligned_series(
    instance: str = "1",
    sensors: Optional[List[str]] = Query(default=None),
    dashboard: DashboardService = Depends(get_dashboard),
    selection: SensorSelectionStore = Depends(get_selection_store),
) -> SeriesResponse:
    charted, aligned = dashboard.series(_active_sensors(selection, instance, sensors))
    series = []
    for name in charted:
        key = NUMERIC_SENSOR_FIELDS[name]
        series.append(
            SeriesOut(sensor=name, field=key, board=FIELDS_BY_KEY[key].board, values=aligned.values[key])
        )
    return SeriesResponse(
        timeline=aligned.timeline,
        labels=[format_chart_label(moment) for moment in aligned.timeline],
        series=series,
    )


@router.get("/automations", response_model=List[Automation], response_model_by_alias=True)
async def list_automations(
    dashboard: DashboardService = Depends(get_dashboard),
) -> List[Automation]:
    return list(dashboard.state.automations)


@router.post(
    "/automations",
    status_code=status.HTTP_201_CREATED,
    response_model=AutomationCreated,
)
def create_automation(
    payload: AutomationPayload,
    instance: str = "1",
    service: AutomationService = Depends(get_automation_service),
    selection: SensorSelectionStore = Depends(get_selection_store),
) -> AutomationCreated:
    created = service.create(payload, selection.get(instance))
    return AutomationCreated(id=created.id)


@router.put("/automations/{automation_id}", response_model=Automation, response_model_by_alias=True)
def replace_automation(
    automation_id: str,
    payload: AutomationPayload,
    instance: str = "1",
    service: AutomationService = Depends(get_automation_service),
    selection: SensorSelectionStore = Depends(get_selection_store),
) -> Automation:
    try:
        return service.update(automation_id, payload, selection.get(instance))
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.patch(
    "/automations/{automation_id}/enabled",
    response_model=Automation,
    response_model_by_alias=True,
)
def toggle_automation(
    automation_id: str,
    update: AutomationEnabledUpdate,
    service: AutomationService = Depends(get_automation_service),
) -> Automation:
    try:
        return service.set_enabled(automation_id, update.enabled)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.delete("/automations/{automation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_automation(
    automation_id: str,
    service: AutomationService = Depends(get_automation_service),
) -> None:
    try:
        service.delete(automation_id)
    except KeyError as exc:
        raise _not_found(exc) from exc


@router.delete("/automations", status_code=status.HTTP_200_OK)
def clear_automations(
    service: AutomationService = Depends(get_automation_service),
) -> dict[str, int]:
    return {"removed": service.clear()}


@router.get("/instances/{instance}/sensors", response_model=SensorSelectionResponse)
async def instance_sensors(
    instance: str,
    selection: SensorSelectionStore = Depends(get_selection_store),
) -> SensorSelectionResponse:
    return SensorSelectionResponse(instance=instance, sensors=selection.get(instance))


@router.post(
    "/instances/{instance}/sensors",
    response_model=SensorSelectionResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_instance_sensor(
    instance: str,
    request: SensorAddRequest,
    selection: SensorSelectionStore = Depends(get_selection_store),
) -> SensorSelectionResponse:
    try:
        sensors = selection.add(instance, request.sensor)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return SensorSelectionResponse(instance=instance, sensors=sensors)


@router.delete("/instances/{instance}/sensors/{sensor}", response_model=SensorSelectionResponse)
def remove_instance_sensor(
    instance: str,
    sensor: str,
    selection: SensorSelectionStore = Depends(get_selection_store),
) -> SensorSelectionResponse:
    try:
        sensors = selection.remove(instance, sensor)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return SensorSelectionResponse(instance=instance, sensors=sensors)


@router.delete("/instances/{instance}/sensors", response_model=SensorSelectionResponse)
def clear_instance_sensors(
    instance: str,
    selection: SensorSelectionStore = Depends(get_selection_store),
) -> SensorSelectionResponse:
    selection.clear(instance)
    return SensorSelectionResponse(instance=instance, sensors=[])


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(
    dashboard: DashboardService = Depends(get_dashboard),
) -> dict[str, str]:
    return {"status": "ok" if dashboard.started else "starting"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
