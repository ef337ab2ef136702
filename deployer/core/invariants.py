"""Default invariant injection.

Adds the files every generated app must carry regardless of what the code
generator produced: the environment-aware API client config and a health
route the hosting platform can poll.
"""

import json

from deployer.models.app import AppSpec
from deployer.models.generation import FILE_MARKER, InjectionResult

ENV_CONFIG_PATH = "lib/fastform/env.ts"
HEALTH_ROUTE_PATH = "app/api/health/route.ts"

HEALTH_ROUTE = """import { NextResponse } from 'next/server'

export function GET() {
  return NextResponse.json({ status: 'ok' })
}
"""


def _env_config(spec: AppSpec) -> str:
    environments = (spec.model_extra or {}).get("environments") or {}
    api_urls = {
        name: (env or {}).get("apiUrl", "")
        for name, env in sorted(environments.items())
    }
    return (
        f"export const APP_ID = {json.dumps(spec.id)}\n"
        f"export const ORG_ID = {json.dumps(spec.meta.org_id)}\n"
        f"export const API_URLS = {json.dumps(api_urls, sort_keys=True)} as const\n\n"
        "export const API_BASE_URL =\n"
        "  process.env.NEXT_PUBLIC_API_URL ?? API_URLS[process.env.VERCEL_ENV === 'production' ? 'production' : 'staging'] ?? ''\n"
    )


class DefaultInvariantInjector:
    """Appends the required files as ``// FILE:`` sections."""

    async def inject(self, code: str, spec: AppSpec) -> InjectionResult:
        injected = {
            ENV_CONFIG_PATH: _env_config(spec),
            HEALTH_ROUTE_PATH: HEALTH_ROUTE,
        }
        sections = [code] if code else []
        sections.extend(f"{FILE_MARKER}{path}\n{content}" for path, content in injected.items())
        return InjectionResult(code="\n\n".join(sections), injected_files=list(injected))
