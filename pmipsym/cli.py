#!/bin/env python3
"""CLI entrypoint for pmipsym.

Two commands share the same pmip machinery:

    resolve  look addresses up in pmip files (explicit paths or by pid)
    trace    attach with Frida and print symbolised stacks on a hook
"""

import argparse
import os
import signal
import threading
import time
import frida
from yaspin import yaspin
from pmipsym.common import U64_MAX, ModRVA
from pmipsym.discovery import DomainFiles, find_pmip_files
from pmipsym.frida_host import StackTracer, TraceConf
from pmipsym.resolver import Resolver

def get_device(device, remote):
    """Resolve a Frida device handle from CLI arguments.

    Args:
        device: Device selector ("local", "usb", or "remote").
        remote: Remote host string used when device == "remote".

    Returns:
        A Frida device object ready for attach operations.
    """
    if device == "local":
        return frida.get_local_device()
    if device == "usb":
        return frida.get_usb_device(timeout=5)
    if device == "remote":
        return frida.get_device_manager().add_remote_device(remote)
    raise ValueError("Invalid device type")

def parse_hook(hook):
    """Parse <MOD>!0x<RVA> hook strings into a ModRVA."""
    [mod, rva] = hook.split('!')
    return ModRVA(mod, int(rva, 16))

def parse_address(addr):
    """Parse an unsigned 64-bit hex address, with or without 0x prefix."""
    try:
        value = int(addr, 16)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid hex address: {addr}")
    if value < 0 or value > U64_MAX:
        raise argparse.ArgumentTypeError(f"address out of 64-bit range: {addr}")
    return value

def parse_args(argv=None) -> argparse.Namespace:
    """Define and parse CLI arguments."""
    p = argparse.ArgumentParser(
        description="Resolve JIT instruction pointers using pmip files"
    )
    sub = p.add_subparsers(dest="command", required=True)

    r = sub.add_parser("resolve", help="Resolve addresses against pmip files")
    r.add_argument("addresses", nargs="+", type=parse_address, help="Hex addresses to resolve")
    src = r.add_mutually_exclusive_group(required=True)
    src.add_argument(
        "--file",
        action="append",
        help="pmip file to load (repeatable)",
    )
    src.add_argument(
        "--pid",
        type=int,
        help="Load the newest pmip file of every domain of this process",
    )
    r.add_argument(
        "--dir",
        default=os.environ.get("PMIPSYM_DIR"),
        help="Directory holding pmip files. Default: $PMIPSYM_DIR or the temp dir",
    )

    t = sub.add_parser("trace", help="Print symbolised stacks of a live process")
    t.add_argument("pid", type=int, help="PID of the target process")
    t.add_argument(
        "--hook",
        required=True,
        type=parse_hook,
        help="Function whose calls trigger a backtrace. Must be in format <MOD>!0x<HEX_RVA>.",
    )
    t.add_argument(
        "--device",
        default="local",
        choices=["local", "usb", "remote"],
        help="Frida device selection. Default: %(default)s",
    )
    t.add_argument(
        "--remote-host",
        default="127.0.0.1:27042",
        help='Remote Frida server address for --device remote (e.g. "192.168.1.10:27042")',
    )
    t.add_argument(
        "--dir",
        default=os.environ.get("PMIPSYM_DIR"),
        help="Directory holding pmip files. Default: $PMIPSYM_DIR or the temp dir",
    )
    t.add_argument("--max-frames", type=int, default=64, help="Frames per backtrace. Default: %(default)s")
    t.add_argument("--force", action="store_true", help="Resolve JIT frames even without a Mono runtime")
    t.add_argument("--verbose", action="store_true", help="Print lookup diagnostics")

    return p.parse_args(argv)


def cmd_resolve(args) -> int:
    """Load pmip files and print one line per address."""
    if args.file:
        paths = args.file
    else:
        domains = DomainFiles()
        domains.update(find_pmip_files(args.pid, args.dir))
        paths = domains.paths()
        if not paths:
            print(f"[!] no pmip files found for pid {args.pid}")
            return 1

    with Resolver() as resolver:
        for path in paths:
            if not resolver.register_file(path):
                print(f"[!] failed to load pmip file: {path}")
                return 1

        for addr in args.addresses:
            found = resolver.lookup(addr)
            if found is None:
                print(f"{addr:016X}\t??")
            elif found.file:
                print(f"{addr:016X}\t{found.name}\t{found.file}")
            else:
                print(f"{addr:016X}\t{found.name}")
    return 0

def cmd_trace(args) -> int:
    """Attach, run until interrupted, then detach cleanly."""
    device = get_device(args.device, args.remote_host)
    conf = TraceConf(device, args.pid, args.hook, args.dir, args.max_frames, args.verbose, args.force)
    tracer = StackTracer(conf)

    def cleanup():
        with yaspin(text="[~] detaching", color="red"):
            t = threading.Thread(target=tracer.stop)
            t.start()
            t.join()

    def sigint_handler(_sig, _frame):
        cleanup()
        raise SystemExit(0)

    signal.signal(signal.SIGINT, sigint_handler)

    try:
        tracer.start()
        while True:
            time.sleep(50)
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        print('[!!! ERROR]\n', e)
        cleanup()
        return 1

def main(argv=None):
    args = parse_args(argv)
    if args.command == "resolve":
        return cmd_resolve(args)
    return cmd_trace(args)

if __name__ == "__main__":
    raise SystemExit(main())
