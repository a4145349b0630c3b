"""CLI entry point using Typer."""

import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import typer

from serial_audit.audit import run_audit
from serial_audit.cluster import ClusterClient, ClusterError
from serial_audit.models import AuditConfig
from serial_audit.polling import AuditCancelled, wait_or_cancel
from serial_audit.renewal import RenewalError
from serial_audit.reporter import generate_json_report, generate_text_report
from serial_audit.scanner import RevocationFileError

app = typer.Typer(help="Find cert-manager Certificates listed in an affected serials file and renew them")

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
)

INTRO = (
    "This tool will query a Kubernetes cluster, check if any certificates are "
    "listed in the affected serials file and trigger a renewal of any affected "
    "certificates. It is safe to run multiple times, and will take no action if "
    "certificates do not need to be re-issued."
)


def _install_signal_handlers(cancel: threading.Event) -> None:
    def handler(signum, frame):
        logging.getLogger(__name__).warning(f"Received signal {signum}, cancelling...")
        cancel.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


@app.command()
def audit(
    affected_serials_file: Optional[Path] = typer.Option(
        None,
        "--affected-serials-file",
        envvar="SERIAL_AUDIT_SERIALS_FILE",
        help="Path to the extracted affected serials file (lines of 'serial <hex>', optionally .gz)",
    ),
    renew: bool = typer.Option(
        False,
        "--renew/--no-renew",
        help="Renew any affected certificates. This may take a few minutes per Certificate.",
    ),
    kubeconfig: Optional[str] = typer.Option(None, "--kubeconfig", help="Path to kubeconfig (default: $KUBECONFIG or ~/.kube/config, then in-cluster)"),
    context: Optional[str] = typer.Option(None, "--context", help="kubeconfig context to use"),
    api_version: str = typer.Option("v1", "--cert-manager-api-version", help="cert-manager.io API version"),
    request_timeout: float = typer.Option(30.0, "--request-timeout", help="Timeout in seconds for each Kubernetes API call"),
    safety_delay: float = typer.Option(2.0, "--safety-delay", help="Seconds to wait after listing affected certificates before renewing them"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Print the summary as JSON on stdout"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """
    Audit cert-manager Certificates against an affected serials file.
    """
    logger = logging.getLogger(__name__)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("serial_audit").setLevel(logging.DEBUG)

    # Configuration errors end the run before the cluster is touched
    if affected_serials_file is None:
        raise typer.BadParameter(
            "must be specified! Download and extract the affected serials file first.",
            param_hint="--affected-serials-file",
        )
    if not affected_serials_file.is_file():
        raise typer.BadParameter(
            f"file {affected_serials_file} does not exist",
            param_hint="--affected-serials-file",
        )

    audit_config = AuditConfig(serials_file=affected_serials_file, renew=renew, safety_delay=safety_delay)
    cancel = threading.Event()
    _install_signal_handlers(cancel)

    try:
        if renew:
            logger.warning("!!!!! --renew has been set to TRUE. Any affected certificates will have a renewal automatically triggered if found !!!!!")
            logger.warning(
                f"!!!!! Waiting {audit_config.renew_warning_delay:g}s before proceeding, "
                f"if you DO NOT want renewals to be triggered, hit ctrl+c NOW !!!!!"
            )
            wait_or_cancel(audit_config.renew_warning_delay, cancel)
        logger.info(INTRO)

        cluster = ClusterClient.from_kubeconfig(
            kubeconfig=kubeconfig,
            context=context,
            api_version=api_version,
            request_timeout=request_timeout,
        )
        summary = run_audit(audit_config, cluster, cancel=cancel)
    except AuditCancelled:
        logger.error("Cancelled, exiting")
        sys.exit(1)
    except (ClusterError, RevocationFileError, RenewalError) as e:
        logger.error(f"{e}")
        sys.exit(1)

    if json_output:
        print(generate_json_report(summary))
    else:
        print(generate_text_report(summary))
    sys.exit(0)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
