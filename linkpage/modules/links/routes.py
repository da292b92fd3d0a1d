"""
Links Routes
============

Public display of the ordered link list (page, JSON feed, live stream)
and the admin JSON API for editing it.
"""

import json
import logging

from flask import Response, jsonify, render_template, request, stream_with_context
from flask_cors import cross_origin

from linkpage.core.errors import LinkPageError, SubscriptionError, ValidationError
from linkpage.core.session import current_identity, get_linkpage
from . import links_bp, links_admin_bp

logger = logging.getLogger(__name__)

KEEP_ALIVE = ": keep-alive\n\n"


def _serialize(links):
    return [link.to_dict() for link in links]


def event_stream(subscription):
    """
    Server-Sent Events for each list a subscription delivers; closes it when done.

    Each quiet poll interval sends a comment line, so a viewer who has gone
    away surfaces as a failed write and the subscription is released.
    """
    try:
        while not subscription.closed:
            links = subscription.poll()
            if links is None:
                if subscription.closed:
                    break
                yield KEEP_ALIVE
            else:
                yield f"data: {json.dumps(_serialize(links))}\n\n"
    except SubscriptionError as e:
        yield f"event: error\ndata: {json.dumps({'error': e.message})}\n\n"
    finally:
        subscription.close()


# ===== Public Routes =====

@links_bp.route('/')
def index():
    """Public link page"""
    error = None
    try:
        links = get_linkpage().sync.current()
    except SubscriptionError as e:
        logger.error(f"Could not load links for public page: {e}")
        links = []
        error = 'Links are temporarily unavailable. Please try again shortly.'

    return render_template('links/index.html', links=links, error=error)


@links_bp.route('/api/links')
@cross_origin()
def api_links():
    """Ordered link list as JSON, for embedding elsewhere"""
    try:
        links = get_linkpage().sync.current()
    except SubscriptionError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({'links': _serialize(links)})


@links_bp.route('/api/links/stream')
def api_links_stream():
    """Live link list; one event per change, keep-alive comments in between"""
    subscription = get_linkpage().sync.subscribe()
    response = Response(stream_with_context(event_stream(subscription)),
                        mimetype='text/event-stream')
    response.headers['Cache-Control'] = 'no-cache'
    response.headers['X-Accel-Buffering'] = 'no'
    return response


# ===== Admin API Routes =====

def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


@links_admin_bp.errorhandler(LinkPageError)
def handle_link_error(e):
    return jsonify(e.to_dict()), e.status_code


@links_admin_bp.route('', methods=['GET'])
@links_admin_bp.route('/', methods=['GET'])
def api_list_links():
    """All links, in display order"""
    linkpage = get_linkpage()
    linkpage.admins.require_authorized(current_identity())
    return jsonify({'links': _serialize(linkpage.sync.current())})


@links_admin_bp.route('', methods=['POST'])
@links_admin_bp.route('/', methods=['POST'])
def api_create_link():
    """Append a link"""
    data = _json_body()
    link = get_linkpage().links.create(
        current_identity(), data.get('title'), data.get('url'), target=data.get('target')
    )
    return jsonify({'success': True, 'link': link.to_dict()}), 201


@links_admin_bp.route('/<link_id>', methods=['PUT'])
def api_update_link(link_id):
    """Overwrite a link's title/url, and its order/target when given"""
    data = _json_body()
    link = get_linkpage().links.update(
        current_identity(), link_id, data.get('title'), data.get('url'),
        order=data.get('order'), target=data.get('target')
    )
    return jsonify({'success': True, 'link': link.to_dict()})


@links_admin_bp.route('/<link_id>', methods=['DELETE'])
def api_delete_link(link_id):
    """Remove a link"""
    get_linkpage().links.delete(current_identity(), link_id)
    return jsonify({'success': True})
