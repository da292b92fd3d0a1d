"""
Admin Dashboard Routes
======================

Sign-in, first-admin setup and the link management pages.
"""

import logging
from functools import wraps

from flask import flash, jsonify, redirect, render_template, request, url_for

from linkpage.core.errors import (
    AuthError, BootstrapClosedError, LinkPageError, PermissionDeniedError, SubscriptionError
)
from linkpage.core.session import current_identity, forget_identity, get_linkpage, remember_identity
from . import dashboard_bp

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 15


def login_required(f):
    """Decorator to require a signed-in identity"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_identity() is None:
            return redirect(url_for('admin.login', next=request.path))
        return f(*args, **kwargs)
    return decorated_function


def _safe_next(next_page):
    if next_page and next_page.startswith('/') and not next_page.startswith('//'):
        return next_page
    return None


def _bootstrap_mode(identity=None):
    """
    True/False when the admin set could be read, None when the store hides it
    from this visitor (hosted rules only let signed-in users list admins).
    A held bootstrap claim settles it as False in that case.
    """
    admins = get_linkpage().admins
    try:
        return admins.is_bootstrap(identity)
    except PermissionDeniedError:
        pass
    except LinkPageError as e:
        logger.error(f"Could not check bootstrap mode: {e}")
        return False

    try:
        return False if admins.is_claimed() else None
    except LinkPageError as e:
        logger.error(f"Could not read the bootstrap claim: {e}")
        return None


def _session_expired(e):
    forget_identity()
    flash(e.message, 'error')
    return redirect(url_for('admin.login', next=url_for('admin.dashboard')))


# ===== Authentication =====

@dashboard_bp.route('/login', methods=['GET', 'POST'])
def login():
    """Admin sign-in"""
    linkpage = get_linkpage()

    if request.method == 'POST':
        email = request.form.get('email', '').strip().lower()
        password = request.form.get('password', '')

        if not email or not password:
            flash('Please enter both email and password', 'error')
        else:
            try:
                identity = linkpage.context.identity_provider.sign_in(email, password)
                remember_identity(identity)
                logger.info(f"Signed in: {identity.email}")
                flash('Login successful', 'success')
                return redirect(_safe_next(request.args.get('next')) or url_for('admin.dashboard'))
            except AuthError as e:
                linkpage.context.audit.log_security_event('Failed sign-in', {'email': email})
                flash(e.message, 'error')
            except LinkPageError as e:
                logger.error(f"Sign-in error: {e}")
                flash(f'Login error: {e.message}', 'error')

    return render_template('dashboard/login.html', bootstrap_mode=_bootstrap_mode())


@dashboard_bp.route('/setup', methods=['GET', 'POST'])
def setup():
    """Create the first admin account (bootstrap mode only)"""
    linkpage = get_linkpage()

    if _bootstrap_mode() is False:
        flash('An administrator already exists. Please sign in.', 'info')
        return redirect(url_for('admin.login'))

    if request.method == 'POST':
        email = request.form.get('email', '').strip().lower()
        password = request.form.get('password', '')
        confirm_password = request.form.get('confirm_password', '')

        if not email or not password:
            flash('Please enter both email and password', 'error')
            return render_template('dashboard/setup.html', email=email)

        if password != confirm_password:
            flash('Passwords do not match', 'error')
            return render_template('dashboard/setup.html', email=email)

        if not request.form.get('confirm_admin'):
            flash('Please confirm that this account should become the administrator', 'error')
            return render_template('dashboard/setup.html', email=email)

        try:
            identity = linkpage.context.identity_provider.sign_up(email, password)
        except AuthError as e:
            flash(e.message, 'error')
            return render_template('dashboard/setup.html', email=email)
        except LinkPageError as e:
            logger.error(f"Sign-up error: {e}")
            flash(f'Setup error: {e.message}', 'error')
            return render_template('dashboard/setup.html', email=email)

        remember_identity(identity)
        try:
            linkpage.admins.bootstrap(identity)
            flash('Your account is now the administrator', 'success')
        except BootstrapClosedError as e:
            flash(e.message, 'error')
        except LinkPageError as e:
            logger.error(f"Bootstrap after sign-up failed: {e}")
            flash(f'Could not create the administrator: {e.message}', 'error')
        return redirect(url_for('admin.dashboard'))

    return render_template('dashboard/setup.html', email='')


@dashboard_bp.route('/bootstrap', methods=['POST'])
@login_required
def bootstrap():
    """Signed-in user claims admin while no admin exists"""
    if not request.form.get('confirm_admin'):
        flash('Please confirm that this account should become the administrator', 'error')
        return redirect(url_for('admin.dashboard'))

    try:
        get_linkpage().admins.bootstrap(current_identity())
        flash('Your account is now the administrator', 'success')
    except AuthError as e:
        return _session_expired(e)
    except LinkPageError as e:
        flash(e.message, 'error')
    return redirect(url_for('admin.dashboard'))


@dashboard_bp.route('/logout')
def logout():
    """Admin sign-out"""
    forget_identity()
    flash('You have been logged out', 'info')
    return redirect(url_for('admin.login'))


# ===== Dashboard =====

@dashboard_bp.route('/dashboard')
@dashboard_bp.route('/')
def dashboard():
    """Admin dashboard, or the claim/denied page for non-admins"""
    linkpage = get_linkpage()
    identity = current_identity()

    if identity is None:
        if _bootstrap_mode():
            return redirect(url_for('admin.setup'))
        return redirect(url_for('admin.login', next=request.path))

    try:
        authorized = linkpage.admins.is_authorized(identity)
        bootstrap_mode = not authorized and linkpage.admins.is_bootstrap(identity)
    except AuthError as e:
        return _session_expired(e)
    except LinkPageError as e:
        logger.error(f"Admin check failed for {identity.email}: {e}")
        return render_template('dashboard/denied.html', identity=identity, error=e.message), e.status_code

    if bootstrap_mode:
        return render_template('dashboard/claim.html', identity=identity)

    if not authorized:
        return render_template('dashboard/denied.html', identity=identity, error=None), 403

    error = None
    try:
        links = linkpage.sync.current()
    except SubscriptionError as e:
        links = []
        error = e.message

    editing = request.args.get('edit')
    return render_template(
        'dashboard/dashboard.html',
        identity=identity,
        links=links,
        editing=editing,
        error=error,
        activity=linkpage.context.audit.recent(RECENT_ACTIVITY_LIMIT),
    )


@dashboard_bp.route('/status')
def status():
    """Sign-in and admin status for the current session"""
    linkpage = get_linkpage()
    identity = current_identity()

    if identity is None:
        return jsonify({'signed_in': False, 'is_admin': False, 'bootstrap_mode': _bootstrap_mode()})

    try:
        is_admin = linkpage.admins.is_authorized(identity)
        bootstrap_mode = linkpage.admins.is_bootstrap(identity)
    except LinkPageError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        'signed_in': True,
        'email': identity.email,
        'is_admin': is_admin,
        'bootstrap_mode': bootstrap_mode,
    })


# ===== Link Form Actions =====

def _link_action(action, success_message):
    try:
        action(current_identity())
        flash(success_message, 'success')
    except AuthError as e:
        return _session_expired(e)
    except LinkPageError as e:
        flash(e.message, 'error')
    return redirect(url_for('admin.dashboard'))


@dashboard_bp.route('/links', methods=['POST'])
@login_required
def create_link():
    """Append a link from the add form"""
    service = get_linkpage().links
    form = request.form
    return _link_action(
        lambda identity: service.create(identity, form.get('title'), form.get('url'),
                                        target=form.get('target')),
        'Link added successfully!'
    )


@dashboard_bp.route('/links/<link_id>/update', methods=['POST'])
@login_required
def update_link(link_id):
    """Save the edit form"""
    service = get_linkpage().links
    form = request.form
    return _link_action(
        lambda identity: service.update(identity, link_id, form.get('title'), form.get('url'),
                                        order=form.get('order'), target=form.get('target')),
        'Link updated successfully!'
    )


@dashboard_bp.route('/links/<link_id>/delete', methods=['POST'])
@login_required
def delete_link(link_id):
    """Delete a link"""
    service = get_linkpage().links
    return _link_action(
        lambda identity: service.delete(identity, link_id),
        'Link deleted successfully!'
    )
