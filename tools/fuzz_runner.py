#!/usr/bin/env python3
# tools/fuzz_runner.py
#
# Property fuzzing for the rawpb codec.
#
# Two fuzz categories:
#   A) random structured values -> encode -> decode -> encode -> decode
#      The first decode may reinterpret text as a message, but after one
#      trip the value must be a fixed point of encode/decode.
#   B) random byte strings -> decode
#      Must return a value or raise PbError, never anything else.  A
#      returned value must re-encode and then be a fixed point as in A.
#
# Floats are compared exactly (decoding with float_precision=None);
# NaN is equal to NaN.  Any failure prints a repro payload and exits
# non-zero.

import os, sys, json, math, random
from typing import Any, Dict

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from rawpb import INT64_MAX, INT64_MIN, PbError, decode, encode

SEED = int(os.environ.get("RAWPB_SEED", "4242"))
ROUNDS = int(os.environ.get("RAWPB_FUZZ_ROUNDS", "5000"))

def failure(label: str, detail: str, ctx: Dict[str, Any]) -> None:
    print("FAIL:", label)
    print("DETAIL:", detail)
    print("CTX:", json.dumps(ctx, ensure_ascii=False, default=repr)[:4000])
    raise SystemExit(1)

def same(a: Any, b: Any) -> bool:
    """Structural equality with NaN == NaN and list/dict order significant."""
    if isinstance(a, float) and isinstance(b, float):
        if math.isnan(a) and math.isnan(b):
            return True
        return a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return list(a) == list(b) and all(same(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(same(x, y) for x, y in zip(a, b))
    return type(a) is type(b) and a == b

# --- generators ---

def rand_text(nmax: int) -> str:
    n = random.randint(0, nmax)
    out = []
    for _ in range(n):
        r = random.random()
        if r < 0.7:
            out.append(chr(random.randint(0x20, 0x7E)))
        elif r < 0.9:
            out.append(chr(random.randint(0x00, 0x1F)))
        else:
            # BMP outside the surrogate block
            out.append(chr(random.choice([random.randint(0xA0, 0xD7FF),
                                          random.randint(0xE000, 0xFFFD)])))
    return "".join(out)

def rand_number() -> Any:
    r = random.random()
    if r < 0.5:
        return random.randint(0, 300)
    if r < 0.8:
        return random.randint(-(2**53 - 1), 2**53 - 1)
    # wide values travel as decimal strings
    n = random.choice([random.randint(2**53, INT64_MAX), random.randint(INT64_MIN, -(2**53))])
    return str(n)

def rand_scalar(stype: str) -> Any:
    if stype == "number":
        return rand_number()
    if stype == "double":
        return random.uniform(-1e12, 1e12)
    if stype == "float":
        return random.uniform(-1e6, 1e6)
    return rand_text(24)

def rand_message(depth: int = 0) -> Dict[str, Any]:
    msg: Dict[str, Any] = {}
    for _ in range(random.randint(0, 6)):
        number = random.randint(1, 20) if random.random() < 0.9 else random.randint(1, 2**29)
        stype = random.choice(["number", "double", "float", "string", "object"])
        if stype == "object" and depth >= 4:
            stype = "string"
        key = "{}/{}".format(number, stype)
        if key in msg:
            continue
        if stype == "object":
            make = lambda: rand_message(depth + 1)
        else:
            make = lambda: rand_scalar(stype)
        if random.random() < 0.2:
            msg[key] = [make() for _ in range(random.randint(2, 4))]
        else:
            msg[key] = make()
    return msg

def rand_bytes() -> bytes:
    r = random.random()
    if r < 0.5:
        return bytes(random.getrandbits(8) for _ in range(random.randint(0, 32)))
    # mutate a valid payload so the decoder gets past the first tag
    buf = bytearray(encode(rand_message()))
    for _ in range(random.randint(1, 3)):
        if not buf:
            break
        i = random.randrange(len(buf))
        op = random.random()
        if op < 0.4:
            buf[i] = random.getrandbits(8)
        elif op < 0.7:
            del buf[i:]
        else:
            buf.insert(i, random.getrandbits(8))
    return bytes(buf)

# --- properties ---

def check_fixed_point(label: str, first: Dict[str, Any], ctx: Dict[str, Any]) -> None:
    try:
        again = encode(first)
    except PbError as e:
        failure(label + " re-encode", "{} {}".format(e.code, e), ctx)
    try:
        second = decode(again, float_precision=None)
    except PbError as e:
        failure(label + " re-decode", "{} {}".format(e.code, e), dict(ctx, hex=again.hex()))
    if not same(first, second):
        failure(label + " fixed point", "{!r} != {!r}".format(first, second),
                dict(ctx, hex=again.hex()))

def run(rounds: int, seed: int) -> None:
    """Run both fuzz categories.  Any failure raises SystemExit(1)."""
    random.seed(seed)
    for i in range(rounds):
        # A) structured values
        if random.random() < 0.5:
            value = rand_message()
            try:
                wire = encode(value)
            except PbError as e:
                failure("A encode", "{} {}".format(e.code, e), {"round": i, "value": value})
            try:
                first = decode(wire, float_precision=None)
            except PbError as e:
                failure("A decode", "{} {}".format(e.code, e), {"round": i, "hex": wire.hex()})
            check_fixed_point("A", first, {"round": i, "value": value})
            continue

        # B) arbitrary bytes
        raw = rand_bytes()
        try:
            first = decode(raw, float_precision=None)
        except PbError:
            continue
        except Exception as e:
            failure("B decode", "{}: {}".format(type(e).__name__, e), {"round": i, "hex": raw.hex()})
        check_fixed_point("B", first, {"round": i, "hex": raw.hex()})

def main() -> int:
    run(ROUNDS, SEED)
    print(f"OK: fuzz rounds={ROUNDS} seed={SEED} (no failures)")
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
