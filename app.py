from typing import List

from fastapi import FastAPI, Depends, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sqlalchemy.orm import Session

import store
from auth import RequestContext, access, get_identity, resolve_role
from config import settings
from database import Base, engine, SessionLocal
from errors import ServiceError, Unauthorized, UpstreamError, ValidationError
from identity import IdentityClient, IdentityError
from logging_setup import configure_logging, get_logger
from schemas import (
    AdminCreateUser,
    CreateHarvest,
    CreatePlot,
    Deleted,
    HarvestOut,
    Login,
    Message,
    PlotOut,
    PlotSummary,
    RecoverPassword,
    Register,
    SetRole,
    UpdatePassword,
    UpdatePlot,
)

configure_logging(settings.log_level)
log = get_logger("app")

app = FastAPI(title="Plot Harvests API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Authorization", "x-refresh-token"],
)


# ---------- DB ----------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    log.info("schema ready on %s", engine.url.render_as_string(hide_password=True))


# ---------- Errors ----------
@app.exception_handler(ServiceError)
def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=ValidationError.status,
        content={"detail": "invalid input", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "internal error"})


# ---------- Plots ----------
@app.post("/plots", response_model=PlotOut, status_code=201)
def create_plot(
    body: CreatePlot,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(access("plots.create")),
):
    return store.create_plot(db, body)


@app.get("/plots", response_model=List[PlotOut])
def list_plots(db: Session = Depends(get_db), ctx: RequestContext = Depends(access("plots.list"))):
    return store.list_plots(db)


@app.get("/plots/{plot_id}", response_model=PlotOut)
def get_plot(plot_id: str, db: Session = Depends(get_db), ctx: RequestContext = Depends(access("plots.get"))):
    return store.get_plot(db, plot_id)


@app.patch("/plots/{plot_id}", response_model=PlotOut)
def update_plot(
    plot_id: str,
    body: UpdatePlot,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(access("plots.update")),
):
    return store.update_plot(db, plot_id, body)


@app.delete("/plots/{plot_id}", response_model=Deleted)
def delete_plot(plot_id: str, db: Session = Depends(get_db), ctx: RequestContext = Depends(access("plots.delete"))):
    store.delete_plot(db, plot_id)
    return Deleted(ok=True)


@app.get("/plots/{plot_id}/summary", response_model=PlotSummary)
def plot_summary(plot_id: str, db: Session = Depends(get_db), ctx: RequestContext = Depends(access("plots.summary"))):
    return PlotSummary(**store.summary(db, plot_id))


# ---------- Harvests ----------
@app.post("/harvests", response_model=HarvestOut, status_code=201)
def create_harvest(
    body: CreateHarvest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(access("harvests.create")),
):
    return store.create_harvest(db, body)


@app.get("/harvests", response_model=List[HarvestOut])
def list_harvests(db: Session = Depends(get_db), ctx: RequestContext = Depends(access("harvests.list"))):
    return store.list_harvests(db)


@app.get("/harvests/plot/{plot_id}", response_model=List[HarvestOut])
def harvests_by_plot(
    plot_id: str,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(access("harvests.by_plot")),
):
    return store.list_harvests_by_plot(db, plot_id)


# ---------- Auth ----------
@app.post("/auth/register", status_code=201)
def register(body: Register, identity: IdentityClient = Depends(get_identity)):
    try:
        return identity.sign_up(body.email, body.password, data={"full_name": body.full_name})
    except IdentityError as e:
        raise ValidationError(e.message or "registration failed") from e


@app.post("/auth/login")
def login(body: Login, response: Response, identity: IdentityClient = Depends(get_identity)):
    try:
        result = identity.sign_in_with_password(body.email, body.password)
    except IdentityError as e:
        raise Unauthorized(e.message or "login failed") from e
    session = result["session"]
    response.headers["Authorization"] = f"Bearer {session['access_token']}"
    response.headers["x-refresh-token"] = session.get("refresh_token") or ""
    return {"user": result.get("user")}


@app.get("/auth/login/google")
def login_google(identity: IdentityClient = Depends(get_identity)):
    try:
        url = identity.authorize_url("google")
    except IdentityError as e:
        raise ValidationError(e.message) from e
    return {"url": url}


@app.get("/auth/me")
def me(ctx: RequestContext = Depends(access("auth.me"))):
    return ctx.user.raw


@app.post("/auth/recover-password", response_model=Message)
def recover_password(body: RecoverPassword, identity: IdentityClient = Depends(get_identity)):
    try:
        identity.recover(body.email)
    except IdentityError as e:
        raise ValidationError(e.message) from e
    return Message(message="Recovery email sent")


@app.patch("/auth/update-password", response_model=Message)
def update_password(
    body: UpdatePassword,
    identity: IdentityClient = Depends(get_identity),
    ctx: RequestContext = Depends(access("auth.update_password")),
):
    try:
        identity.update_user(ctx.access_token, {"password": body.new_password})
    except IdentityError as e:
        raise ValidationError(e.message) from e
    return Message(message="Password updated")


@app.post("/auth/logout", response_model=Message)
def logout(identity: IdentityClient = Depends(get_identity), ctx: RequestContext = Depends(access("auth.logout"))):
    try:
        identity.sign_out(ctx.access_token)
    except IdentityError as e:
        raise UpstreamError(e.message) from e
    return Message(message="Logged out")


@app.get("/auth/test/user")
def test_user(ctx: RequestContext = Depends(access("auth.test_user"))):
    return {"ok": True, "route": "/auth/test/user", "uid": ctx.user.id, "role": resolve_role(ctx.user)}


@app.post("/auth/admin/users", status_code=201)
def admin_create_user(
    body: AdminCreateUser,
    identity: IdentityClient = Depends(get_identity),
    ctx: RequestContext = Depends(access("auth.admin_create_user")),
):
    attributes = {"email": body.email, "password": body.password}
    if body.email_confirm is not None:
        attributes["email_confirm"] = body.email_confirm
    if body.full_name:
        attributes["user_metadata"] = {"full_name": body.full_name}
    if body.role:
        attributes["app_metadata"] = {"role": body.role}
    try:
        created = identity.admin_create_user(attributes)
    except IdentityError as e:
        raise ValidationError(e.message) from e
    log.info("user %s created by admin %s", created.get("id"), ctx.user.id)
    return created


@app.patch("/auth/admin/role")
def admin_set_role(
    body: SetRole,
    identity: IdentityClient = Depends(get_identity),
    ctx: RequestContext = Depends(access("auth.admin_set_role")),
):
    try:
        updated = identity.admin_update_user_by_id(body.user_id, {"app_metadata": {"role": body.role}})
    except IdentityError as e:
        raise ValidationError(e.message) from e
    log.info("role of user %s set to %s by admin %s", body.user_id, body.role, ctx.user.id)
    return updated
