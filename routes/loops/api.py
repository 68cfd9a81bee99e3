# routes/loops/api.py
"""
Loop dashboard and export endpoints.
"""

from flask import request, jsonify, Response
from flask_login import login_required

from services import audit_service
from services.loops import LoopFilters
from services.loops import service as loop_service
from services.loops.export import generate_loop_pdf, generate_loops_csv
from utils import local_today, parse_int, sanitize_name
from ..helpers import get_actor
from . import loops_bp


@loops_bp.route('/stats')
@login_required
def loop_stats():
    """Dashboard counts over active (non-archived) loops."""
    return jsonify({'success': True, 'stats': loop_service.dashboard_stats(get_actor())})


@loops_bp.route('/closing')
@login_required
def closing_loops():
    """Open loops whose end date falls within the next few days."""
    days = parse_int(request.args.get('days'))
    loops = loop_service.closing_soon(get_actor(), days=days)
    return jsonify({
        'success': True,
        'loops': [loop.to_dict() for loop in loops],
        'count': len(loops)
    })


@loops_bp.route('/export/csv')
@login_required
def export_csv():
    """Download the filtered loop list as CSV."""
    actor = get_actor()
    loops = loop_service.list_loops(LoopFilters.from_args(request.args), actor)
    audit_service.log_export('loops_csv', len(loops), actor_id=actor.id)

    filename = f"loops_{local_today().isoformat()}.csv"
    return Response(
        generate_loops_csv(loops),
        mimetype='text/csv',
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Content-Type": "text/csv",
        }
    )


@loops_bp.route('/<int:loop_id>/export/pdf')
@login_required
def export_pdf(loop_id):
    """Download a PDF report for one loop."""
    actor = get_actor()
    loop = loop_service.get_loop(loop_id, actor)
    pdf_bytes = generate_loop_pdf(loop)
    audit_service.log_export('loop_pdf', 1, actor_id=actor.id)

    filename = f"loop_{loop.id}_{sanitize_name(loop.property_address)}.pdf"
    return Response(
        pdf_bytes,
        mimetype='application/pdf',
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
