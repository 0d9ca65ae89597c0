# (c) Copyright Datacraft, 2026
"""Application factory for the policy store admin API."""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from policy_store.config import Settings, get_settings
from policy_store.db.engine import create_db_engine, create_session_factory, init_db
from policy_store.exceptions import (
	Contention, NotFound, PolicyStoreError, ValidationError
)
from policy_store.rules.registry import RuleRegistry
from policy_store.rules.versions import VersionStore
from policy_store.routers import rules_router, versions_router

logger = logging.getLogger(__name__)

ERROR_STATUS = {
	ValidationError: 422,
	NotFound: 404,
	Contention: 409,
}


def create_app(
	settings: Settings | None = None,
	session_factory: sessionmaker | None = None,
) -> FastAPI:
	"""
	Build the admin API.

	Args:
		settings: defaults to get_settings()
		session_factory: reuse an existing session factory instead of
			creating an engine from settings.db_url
	"""
	settings = settings or get_settings()
	logging.basicConfig(level=settings.log_level)

	if session_factory is None:
		engine = create_db_engine(settings.db_url, echo=settings.echo_sql)
		init_db(engine)
		session_factory = create_session_factory(engine)

	app = FastAPI(title="Policy Store")
	app.state.settings = settings
	app.state.registry = RuleRegistry(session_factory)
	app.state.version_store = VersionStore(
		session_factory, lock_timeout=settings.lock_timeout
	)

	app.include_router(rules_router)
	app.include_router(versions_router)

	@app.exception_handler(PolicyStoreError)
	async def policy_store_error_handler(request: Request, exc: PolicyStoreError):
		status_code = ERROR_STATUS.get(
			type(exc), 500
		)
		if status_code >= 500:
			logger.error(f"Policy store error: {exc.code} {exc.message}")
		return JSONResponse(status_code=status_code, content=exc.to_dict())

	return app
