import csv
from typing import Optional

from fastapi import FastAPI, File, HTTPException, Query, UploadFile

from . import __version__
from .errors import ConfigurationError, RowError, TooManyFailuresError
from .models import AnalyzeResponse, HealthResponse, ReadResponse
from .reader import read_csv

ACCEPTED_SUFFIXES = (".csv", ".tsv", ".txt")

app = FastAPI(
    title="ultra-csv",
    description="Preview csv of unknown shape as typed rows",
    version=__version__,
)


def _check_upload(file: UploadFile) -> None:
    if not (file.filename or "").lower().endswith(ACCEPTED_SUFFIXES):
        raise HTTPException(status_code=422, detail="Only CSV, TSV or TXT files are supported")


def _preference(delimiter: Optional[str], preset: Optional[str]):
    if preset:
        return preset
    if delimiter:
        return {"delimiter": delimiter}
    return None


@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


@app.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    file: UploadFile = File(...),
    header: bool = True,
    encoding: Optional[str] = None,
):
    _check_upload(file)
    raw = await file.read()
    try:
        rows = read_csv(raw, header=header, encoding=encoding)
    except ConfigurationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    with rows:
        return {
            "encoding": rows.encoding,
            "analysis": rows.analysis,
            "preference": rows.preference,
        }


@app.post("/read", response_model=ReadResponse)
async def read(
    file: UploadFile = File(...),
    header: bool = True,
    strict: bool = True,
    guess_types: bool = True,
    limit: Optional[int] = Query(default=None, gt=0),
    delimiter: Optional[str] = Query(default=None, min_length=1, max_length=1),
    preset: Optional[str] = None,
    encoding: Optional[str] = None,
):
    _check_upload(file)
    raw = await file.read()
    try:
        rows = read_csv(
            raw,
            preference=_preference(delimiter, preset),
            header=header,
            strict=strict,
            guess_types=guess_types,
            limit=limit,
            encoding=encoding,
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    with rows:
        try:
            data = list(rows)
        except (csv.Error, RowError, TooManyFailuresError) as exc:
            raise HTTPException(status_code=422, detail=f"malformed csv: {exc}")

    return {
        "encoding": rows.encoding,
        "preference": rows.preference,
        "field_names": rows.field_names,
        "rows": data,
        "row_count": len(data),
    }
