from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import jinja2
from fastapi import Depends, FastAPI, Form, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from config import Settings
from database import Collections, connect
from errors import StorefrontError
from logging_config import get_logger, setup_logging
from schemas import short_id
from storefront import Storefront

log = get_logger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def fmt_number(n) -> str:
    return f"{int(n):,}"


templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["fmt_number"] = fmt_number
templates.env.filters["last4"] = short_id


def get_storefront(request: Request) -> Storefront:
    return request.app.state.storefront


def create_app(settings: Optional[Settings] = None,
               collections: Optional[Collections] = None) -> FastAPI:
    """Build the web app.

    With ``collections`` given (tests, scripts) the handles are used as-is;
    otherwise the app connects to MongoDB on startup and disconnects on
    shutdown.
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = None
        if getattr(app.state, "storefront", None) is None:
            client, cols = connect(settings)
            app.state.storefront = Storefront.build(cols, settings)
        log.info(f"[frontend] listening on port {settings.port}")
        yield
        if client is not None:
            client.close()

    app = FastAPI(title="Penguin Shop", lifespan=lifespan)
    app.state.settings = settings
    if collections is not None:
        app.state.storefront = Storefront.build(collections, settings)

    # ---------- Error mapping ----------

    @app.exception_handler(StorefrontError)
    async def storefront_error(request: Request, exc: StorefrontError):
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.exception_handler(jinja2.TemplateError)
    async def template_error(request: Request, exc: jinja2.TemplateError):
        log.error(f"[tpl] {request.url.path} error: {exc}")
        return PlainTextResponse("could not render page", status_code=500)

    # ---------- Pages ----------

    @app.get("/")
    def home(request: Request, store: Storefront = Depends(get_storefront)):
        view = store.catalog.home_view()
        return templates.TemplateResponse(request, "home.html", {"view": view})

    @app.post("/checkout")
    async def checkout(request: Request, store: Storefront = Depends(get_storefront)):
        form = await request.form()
        await run_in_threadpool(store.checkout.create, form.multi_items())
        return RedirectResponse("/orders", status_code=303)

    @app.get("/orders")
    def orders_board(request: Request, store: Storefront = Depends(get_storefront)):
        view = store.board.list_orders()
        return templates.TemplateResponse(request, "orders_board.html", {"view": view})

    @app.get("/status/{order_id}")
    def order_status(order_id: str, request: Request, store: Storefront = Depends(get_storefront)):
        view = store.status.resolve(order_id)
        return templates.TemplateResponse(request, "order_status.html", {"view": view})

    @app.get("/edit")
    def edit_form(request: Request, order_id: Optional[str] = Query(None, alias="id"),
                  store: Storefront = Depends(get_storefront)):
        view = store.editor.load(order_id)
        return templates.TemplateResponse(request, "edit.html", {"view": view})

    @app.post("/edit")
    def edit_submit(order_id: Optional[str] = Query(None, alias="id"),
                    buyer_name: str = Form(""),
                    address: str = Form(""),
                    store: Storefront = Depends(get_storefront)):
        store.editor.update(order_id, buyer_name, address)
        return RedirectResponse("/orders", status_code=302)

    # ---------- Diagnostics ----------

    @app.get("/healthz")
    def healthz():
        return PlainTextResponse("OK")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
