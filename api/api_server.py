"""
api_server.py - FastAPI Service for the Chronogram Layout Engine
=================================================================

Exposes the duty/sleep timeline layout to the dashboard frontend.

Endpoints:
- GET /health - Health check
- POST /api/timeline/layout - Analysis JSON in, positioned bars out

Usage:
    uvicorn api.api_server:app --reload --host 0.0.0.0 --port 8000
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from core import LayoutConfig, TimelineLayoutEngine
from models.data_models import (
    Bar, DutyBar, DutyRecord, FdpLimitMarker, InFlightRestBar,
    NadirMarker, ReferenceFrame, RestDayRecord, SleepBar, WoclBand
)
from parsers.analysis_parser import AnalysisPayloadParser

logger = logging.getLogger(__name__)

# ============================================================================
# FASTAPI APP INITIALIZATION
# ============================================================================

app = FastAPI(
    title="Chronogram Layout API",
    description="Duty/sleep timeline layout for home-base, UTC and elapsed-time chronograms",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class LayoutRequest(BaseModel):
    analysis: Dict[str, Any]             # /api/analyze response body
    month: Optional[str] = None          # Format: "2026-02"; defaults to the first duty's month
    frame: str = "home_base"             # "home_base", "utc", "elapsed"
    config_preset: str = "default"       # "default", "conservative", "liberal"
    home_timezone: Optional[str] = None  # Overrides analysis.home_base_timezone
    detail_timelines: List[Dict[str, Any]] = []  # /api/duty/{analysis_id}/{duty_id} responses


class PhaseResponse(BaseModel):
    phase: str
    performance: float
    width_percent: float


class SegmentResponse(BaseModel):
    kind: str                  # 'checkin', 'flight', 'ground', 'training'
    start_hour: float
    end_hour: float
    performance: float
    flight_number: Optional[str] = None
    departure: Optional[str] = None
    arrival: Optional[str] = None
    phases: List[PhaseResponse] = []
    activity_code: Optional[str] = None    # 'DH', 'IR', ...
    is_deadhead: bool = False
    training_code: Optional[str] = None


class DetailSummaryResponse(BaseModel):
    point_count: int
    min_performance: float
    mean_performance: float
    min_performance_hour: float


class BarResponse(BaseModel):
    kind: str                  # 'duty', 'sleep', 'wocl', 'nadir', 'inflight_rest', 'fdp_limit'
    lane: str
    row: int
    start_hour: float
    end_hour: float
    source_id: Optional[str] = None   # duty_id, or rest_YYYY-MM-DD for rest-day sleep
    is_overflow_start: bool = False
    is_overflow_continuation: bool = False

    # Duty bars
    segments: List[SegmentResponse] = []
    detail: Optional[DetailSummaryResponse] = None

    # Sleep bars
    recovery_score: Optional[float] = None
    effective_sleep: Optional[float] = None
    sleep_efficiency: Optional[float] = None
    sleep_strategy: Optional[str] = None
    is_pre_duty: Optional[bool] = None
    resolved_by: Optional[str] = None
    original_start_hour: Optional[float] = None
    original_end_hour: Optional[float] = None
    sleep_start_zulu: Optional[str] = None
    sleep_end_zulu: Optional[str] = None
    quality_factors: Optional[Dict[str, float]] = None
    wocl_overlap_hours: Optional[float] = None

    # In-flight rest bars
    duration_hours_total: Optional[float] = None
    effective_sleep_hours: Optional[float] = None
    is_during_wocl: Optional[bool] = None
    crew_set: Optional[str] = None

    # WOCL / nadir / FDP markers
    phase_shift: Optional[float] = None
    max_fdp_hours: Optional[float] = None


class CircadianStateResponse(BaseModel):
    row: int
    phase_shift_hours: float


class LayoutResponse(BaseModel):
    frame: str
    month: str
    first_row: int
    last_row: int
    bars: List[BarResponse]
    circadian_states: List[CircadianStateResponse]
    row_warnings: Dict[str, List[str]] = {}
    skipped_duties: List[str] = []


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _source_id(source: Any) -> Optional[str]:
    if isinstance(source, DutyRecord):
        return source.duty_id
    if isinstance(source, RestDayRecord):
        return f"rest_{source.date.isoformat()}"
    return None


def _build_bar_response(bar: Bar) -> BarResponse:
    """Shared serialization for every bar variant"""
    fields = dict(
        kind=bar.kind.value,
        lane=bar.lane.value,
        row=bar.row,
        start_hour=round(bar.start_hour, 4),
        end_hour=round(bar.end_hour, 4),
        source_id=_source_id(bar.source),
        is_overflow_start=bar.is_overflow_start,
        is_overflow_continuation=bar.is_overflow_continuation,
    )

    if isinstance(bar, DutyBar):
        fields['segments'] = [
            SegmentResponse(
                kind=seg.kind.value,
                start_hour=round(seg.start_hour, 4),
                end_hour=round(seg.end_hour, 4),
                performance=seg.performance,
                flight_number=seg.flight_number,
                departure=seg.departure,
                arrival=seg.arrival,
                phases=[
                    PhaseResponse(phase=p.phase.value, performance=p.performance, width_percent=p.width_percent)
                    for p in seg.phases
                ],
                activity_code=seg.activity_code,
                is_deadhead=seg.is_deadhead,
                training_code=seg.training_code,
            )
            for seg in bar.segments
        ]
        if bar.detail is not None:
            fields['detail'] = DetailSummaryResponse(
                point_count=bar.detail.point_count,
                min_performance=bar.detail.min_performance,
                mean_performance=round(bar.detail.mean_performance, 2),
                min_performance_hour=round(bar.detail.min_performance_hour, 4),
            )
    elif isinstance(bar, SleepBar):
        fields.update(
            recovery_score=round(bar.recovery_score, 1),
            effective_sleep=bar.effective_sleep,
            sleep_efficiency=bar.sleep_efficiency,
            sleep_strategy=bar.sleep_strategy,
            is_pre_duty=bar.is_pre_duty,
            resolved_by=bar.resolved_by.value if bar.resolved_by else None,
            original_start_hour=bar.original_start_hour,
            original_end_hour=bar.original_end_hour,
            sleep_start_zulu=bar.sleep_start_zulu,
            sleep_end_zulu=bar.sleep_end_zulu,
            quality_factors=bar.quality_factors,
            wocl_overlap_hours=bar.wocl_overlap_hours,
        )
    elif isinstance(bar, InFlightRestBar):
        fields.update(
            duration_hours_total=bar.duration_hours_total,
            effective_sleep_hours=bar.effective_sleep_hours,
            is_during_wocl=bar.is_during_wocl,
            crew_set=bar.crew_set,
        )
    elif isinstance(bar, (WoclBand, NadirMarker)):
        fields['phase_shift'] = round(bar.phase_shift, 2)
    elif isinstance(bar, FdpLimitMarker):
        fields['max_fdp_hours'] = bar.max_fdp_hours

    return BarResponse(**fields)


def _parse_month(value: str):
    try:
        return datetime.strptime(value, "%Y-%m").date()
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid month {value!r} (expected YYYY-MM)")


# ============================================================================
# ENDPOINTS
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat()
    }


@app.post("/api/timeline/layout", response_model=LayoutResponse)
async def layout_timeline(request: LayoutRequest):
    """
    Position duty, sleep, in-flight rest and circadian bars for one month
    """
    try:
        frame = ReferenceFrame(request.frame)
    except ValueError:
        valid = [f.value for f in ReferenceFrame]
        raise HTTPException(status_code=400, detail=f"Unknown frame {request.frame!r} (use one of {valid})")

    try:
        config = LayoutConfig.from_preset(request.config_preset)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    parser = AnalysisPayloadParser(home_timezone=request.home_timezone)
    parsed = parser.parse(request.analysis)

    if request.month:
        month = _parse_month(request.month)
    elif parsed.month is not None:
        month = parsed.month
    else:
        raise HTTPException(status_code=400, detail="month is required when the analysis has no duties")

    detail_timelines = {}
    for raw in request.detail_timelines:
        try:
            timeline = parser.parse_detail_timeline(raw)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Ignoring malformed detail timeline: {e!r}")
            continue
        detail_timelines[timeline.duty_id] = timeline

    engine = TimelineLayoutEngine(config)
    layout = engine.layout(parsed.duties, parsed.rest_days, month, frame, detail_timelines)

    return LayoutResponse(
        frame=layout.frame.value,
        month=layout.month_start.strftime("%Y-%m"),
        first_row=layout.first_row,
        last_row=layout.last_row,
        bars=[_build_bar_response(bar) for bar in layout.bars],
        circadian_states=[
            CircadianStateResponse(row=s.row, phase_shift_hours=round(s.phase_shift_hours, 2))
            for s in layout.circadian_states
        ],
        row_warnings={str(row): warnings for row, warnings in layout.row_warnings.items()},
        skipped_duties=parsed.skipped_duty_ids,
    )


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    logging.basicConfig(level=logging.INFO)

    print("=" * 70)
    print("CHRONOGRAM LAYOUT API SERVER")
    print("=" * 70)
    print(f"API will be available at: http://localhost:{port}")
    print(f"API docs at: http://localhost:{port}/docs")
    print()

    uvicorn.run(app, host="0.0.0.0", port=port)
