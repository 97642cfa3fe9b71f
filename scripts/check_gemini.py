#!/usr/bin/env python3
"""
Gemini Connectivity & Latency Diagnostics

Sends a few tiny generateContent requests with the same generation settings
the copilot uses and reports status codes and round-trip latency.
Run: python scripts/check_gemini.py [--runs 3] [--model gemini-2.5-flash]
"""

import argparse
import os
import statistics
import time

from dotenv import load_dotenv
import requests

load_dotenv()

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def check_generate(api_key: str, model: str, base_url: str, prompt: str) -> dict:
    """
    Send one generateContent request.

    Args:
        api_key: Gemini API key
        model: Model name
        base_url: REST base URL including the API version
        prompt: Text of the single user turn

    Returns:
        dict with status, latency and reply or error
    """
    url = f"{base_url.rstrip('/')}/models/{model}:generateContent"
    headers = {
        "x-goog-api-key": api_key,
        "Content-Type": "application/json",
    }
    body = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "thinkingConfig": {"thinkingBudget": 0},
            "maxOutputTokens": 20,
            "temperature": 0.2,
            "topP": 0.8,
            "topK": 40,
        },
    }

    start = time.perf_counter()
    try:
        response = requests.post(url, headers=headers, json=body, timeout=30)
    except requests.RequestException as e:
        return {"status_code": None, "latency_ms": None, "error": str(e)}
    latency_ms = (time.perf_counter() - start) * 1000

    result = {
        "status_code": response.status_code,
        "latency_ms": latency_ms,
        "retry_after": response.headers.get("retry-after"),
    }

    if response.status_code == 200:
        try:
            data = response.json()
            parts = data["candidates"][0]["content"]["parts"]
            result["reply"] = parts[0].get("text", "").strip()
        except (ValueError, KeyError, IndexError):
            result["reply"] = response.text[:200]
    else:
        try:
            result["error"] = response.json().get("error", {}).get("message", response.text[:200])
        except ValueError:
            result["error"] = response.text[:200]

    return result


def print_result(index: int, result: dict) -> None:
    """Print one request outcome."""
    status = result["status_code"]
    latency = f"{result['latency_ms']:.0f}ms" if result["latency_ms"] is not None else "-"

    if status == 200:
        print(f"   #{index}: ✅ 200 in {latency} → '{result.get('reply', '')[:40]}'")
    elif status == 429:
        print(f"   #{index}: ❌ RATE LIMITED (429) retry-after={result.get('retry_after')}")
    elif status in (401, 403):
        print(f"   #{index}: ❌ AUTHENTICATION FAILED ({status})")
    elif status == 404:
        print(f"   #{index}: ❌ MODEL NOT FOUND (404)")
    elif status is None:
        print(f"   #{index}: ❌ NETWORK ERROR: {result.get('error')}")
    else:
        print(f"   #{index}: ❌ UNEXPECTED ERROR ({status}): {result.get('error')}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Check Gemini connectivity and latency")
    parser.add_argument("--runs", type=int, default=3, help="Number of requests (default: 3)")
    parser.add_argument("--model", default=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"))
    parser.add_argument("--prompt", default="Reply with the single word: ready")
    args = parser.parse_args()

    api_key = os.getenv("GEMINI_API_KEY")
    base_url = os.getenv("GEMINI_BASE_URL", DEFAULT_BASE_URL)

    print("=" * 60)
    print("🔍 GEMINI DIAGNOSTICS")
    print("=" * 60)
    print(f"\nModel: {args.model}")
    print(f"Base URL: {base_url}")

    if not api_key:
        print("\n❌ ERROR: Missing GEMINI_API_KEY in .env")
        return 1

    print(f"\nSending {args.runs} request(s)...")
    results = []
    for i in range(1, args.runs + 1):
        result = check_generate(api_key, args.model, base_url, args.prompt)
        print_result(i, result)
        results.append(result)

    latencies = [r["latency_ms"] for r in results if r["status_code"] == 200]

    print("\n" + "=" * 60)
    print("📋 SUMMARY")
    print("=" * 60)
    print(f"\nSuccessful: {len(latencies)}/{len(results)}")
    if latencies:
        print(f"Median latency: {statistics.median(latencies):.0f}ms")
        print(f"Max latency:    {max(latencies):.0f}ms")
        if statistics.median(latencies) > 2000:
            print("   ⚠️  Answers will lag behind speech. Consider a faster model.")
        else:
            print("   ✅ Fast enough for live answers")

    return 0 if len(latencies) == len(results) else 1


if __name__ == "__main__":
    raise SystemExit(main())
