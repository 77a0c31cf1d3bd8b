"""
Prompto — API smoke check
===========================
Calls the deployed read API end to end:

    GET /getCategory  →  POST /getCategoryList (first category)
                      →  POST /getPromptDetails (first prompt)

Usage:
    prompto-api-check [base_url]        (default: PROMPTO_API_BASE)
"""
import logging
import sys
from dataclasses import dataclass
from typing import Optional

import requests

from .config import Config, banner, setup_logging

log = logging.getLogger("prompto.api_check")

TIMEOUT_SECONDS = 30


@dataclass
class CheckResults:
    get_category:       bool = False
    get_category_list:  bool = False
    get_prompt_details: bool = False

    @property
    def passed(self) -> int:
        return sum([self.get_category, self.get_category_list, self.get_prompt_details])

    def hints(self) -> list[str]:
        hints = []
        if self.get_category and not self.get_category_list:
            hints.append("getCategoryList failed but getCategory passed: prompts are probably "
                         "missing categoryId. Re-run the migration or prompto-repair.")
        if self.get_category_list and not self.get_prompt_details:
            hints.append("getPromptDetails failed but getCategoryList passed: promptDetails keys "
                         "probably do not match prompt _id values. Run prompto-repair.")
        return hints


class ApiChecker:
    def __init__(self, base_url: str, api_key: str, session=None):
        self.base_url = base_url.rstrip("/")
        self._headers = {"x-api-key": api_key}
        self._session = session or requests.Session()

    def _call(self, method: str, path: str, body: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        if method == "GET":
            resp = self._session.get(url, headers=self._headers, timeout=TIMEOUT_SECONDS)
        else:
            resp = self._session.post(url, headers=self._headers, json=body, timeout=TIMEOUT_SECONDS)
        return resp.json()

    def check_category(self) -> Optional[str]:
        data = self._call("GET", "/getCategory")
        if data.get("success") and data.get("data"):
            first = data["data"][0]
            log.info(f"PASS /getCategory — {len(data['data'])} categories, first: {first.get('_id')}")
            return first.get("_id")
        log.error(f"FAIL /getCategory — {data.get('message', 'no categories found')}")
        return None

    def check_category_list(self, category_id: str) -> Optional[str]:
        data = self._call("POST", "/getCategoryList", {"id": category_id})
        if data.get("success") and data.get("total", 0) > 0:
            log.info(
                f"PASS /getCategoryList — {data['total']} prompts, "
                f"page {data['page']}/{data['totalPages']}"
            )
            return data["data"][0].get("_id")
        if data.get("success"):
            log.warning(f"WARN /getCategoryList — category {category_id} has no prompts")
        else:
            log.error(f"FAIL /getCategoryList — {data.get('message')}")
        return None

    def check_prompt_details(self, prompt_id: str) -> bool:
        data = self._call("POST", "/getPromptDetails", {"_id": prompt_id})
        if data.get("success") and data.get("data"):
            log.info(f"PASS /getPromptDetails — {data['data'].get('_id')}")
            return True
        log.error(f"FAIL /getPromptDetails — {data.get('message')}")
        return False

    def run(self) -> CheckResults:
        results = CheckResults()
        category_id = self.check_category()
        results.get_category = category_id is not None
        if category_id:
            prompt_id = self.check_category_list(category_id)
            results.get_category_list = prompt_id is not None
            if prompt_id:
                results.get_prompt_details = self.check_prompt_details(prompt_id)
        return results


def main(argv=None) -> int:
    setup_logging()
    argv = sys.argv[1:] if argv is None else argv
    base_url = argv[0] if argv else Config.API_BASE

    print(banner("PROMPTO API CHECK"))
    print(f"  API Base: {base_url}")
    print(f"  API Key : {'set' if Config.API_KEY else 'NOT SET'}")

    try:
        results = ApiChecker(base_url, Config.API_KEY).run()
    except Exception:
        log.exception("API check failed")
        return 1

    print(banner("RESULTS"))
    print(f"  {'PASS' if results.get_category else 'FAIL'}  GET  /getCategory")
    print(f"  {'PASS' if results.get_category_list else 'FAIL'}  POST /getCategoryList")
    print(f"  {'PASS' if results.get_prompt_details else 'FAIL'}  POST /getPromptDetails")
    print(f"\n  Score: {results.passed}/3")
    for hint in results.hints():
        print(f"\n  Tip: {hint}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
