"""
Free-text recovery guidance derived from a JarAnalysis.

Three buckets: immediate (act now), suggested (process improvements),
monitoring (coverage). Pure function; no ledger access.
"""

from __future__ import annotations

from backend_jarwatch.analysis_engine.models import JarAnalysis, Recommendations

# More distinct tokens than this suggests auto-processing
AUTO_PROCESSING_TOKEN_THRESHOLD = 5
# More transfers than this suggests configuring auto-processing
AUTO_PROCESSING_TRANSFER_THRESHOLD = 10


def generate_recommendations(analysis: JarAnalysis) -> Recommendations:
    recs = Recommendations()
    direct = analysis.direct_transfers

    if direct:
        recs.immediate.append(
            f"{len(direct)} direct transfers detected - enable monitoring and scan"
        )
        for t in direct:
            recs.immediate.append(
                f"Recover {t.amount_formatted} {t.token_symbol} from {t.transaction_hash[:10]}..."
            )

    if len(analysis.unique_tokens) > AUTO_PROCESSING_TOKEN_THRESHOLD:
        recs.suggested.append(
            f"Consider auto-processing for {len(analysis.unique_tokens)} different tokens"
        )
    if len(direct) > len(analysis.jar_call_transfers):
        recs.suggested.append("Educate users about proper deposit methods")

    for token in analysis.unique_tokens:
        recs.monitoring.append(f"Enable monitoring for token {token}")
    if analysis.total_transfers > AUTO_PROCESSING_TRANSFER_THRESHOLD:
        recs.monitoring.append("Configure auto-processing for frequently transferred tokens")

    return recs
