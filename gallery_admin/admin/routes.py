"""
Admin console routes: dashboard, categories, templates, uploads and media.

Every page needs a signed-in session. Reads are open to any signed-in user;
mutating actions go through the resource services, which refuse non-admin
sessions before touching the network. Known failures are turned into a
flashed notification at the view boundary.
"""
from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    send_file,
    url_for,
)
from flask_login import login_required

from gallery_admin.admin.forms import (
    ActionForm,
    CategoryForm,
    DropForm,
    TemplateForm,
    UploadMetadataForm,
)
from gallery_admin.error_utils import (
    HANDLED_ERRORS,
    flash_failure,
    handle_api_exception,
)
from gallery_admin.errors import ValidationError
from gallery_admin.extensions import get_gateway, get_upload_registry, limiter
from gallery_admin.models import DroppedFile
from gallery_admin.services import get_services
from gallery_admin.uploads import BATCH_RUNNING, admit_files, run_batch

# Create admin blueprint
admin_bp = Blueprint("admin", __name__)

UNAVAILABLE = "—"


@admin_bp.context_processor
def inject_admin_flag():
    """Expose ``can_edit`` so templates hide admin-only controls."""
    return {"can_edit": get_gateway().is_admin()}


def _load_templates():
    try:
        return get_services().templates.list()
    except HANDLED_ERRORS as e:
        flash_failure(e, "Failed to load templates")
        return []


def _load_categories():
    try:
        return get_services().categories.list()
    except HANDLED_ERRORS as e:
        flash_failure(e, "Failed to load categories")
        return []


def _flash_form_errors(form) -> None:
    for field_name, messages in form.errors.items():
        for message in messages:
            if isinstance(message, str):
                flash(message, "danger")
            else:
                current_app.logger.debug(
                    "Nested form error on %s: %s", field_name, message
                )


@admin_bp.route("/")
@login_required
def dashboard():
    """
    Admin dashboard with quick links and resource counts.

    Counts come straight from the remote API; a failed call shows a dash
    instead of a number.
    """
    services = get_services()
    counts = {}
    for name, service in (
        ("categories", services.categories),
        ("templates", services.templates),
    ):
        try:
            counts[name] = len(service.list())
        except HANDLED_ERRORS as e:
            current_app.logger.warning("Dashboard count for %s failed: %s", name, e)
            counts[name] = UNAVAILABLE
    return render_template("admin/dashboard.html", title="Dashboard", counts=counts)


# Categories


@admin_bp.route("/categories")
@login_required
def categories():
    templates = _load_templates()
    items = [
        {"category": category, "template_name": category.template_name(templates)}
        for category in _load_categories()
    ]
    return render_template(
        "admin/categories.html",
        title="Categories",
        items=items,
        action_form=ActionForm(),
    )


@admin_bp.route("/categories/create", methods=["GET", "POST"])
@login_required
def category_create():
    form = CategoryForm()
    form.set_template_choices(_load_templates())

    if form.validate_on_submit():
        category = form.to_category()
        try:
            get_services().categories.create(category)
        except HANDLED_ERRORS as e:
            flash_failure(e, "Failed to create category", name=category.name)
        else:
            flash(f'Category "{category.name}" created.', "success")
            return redirect(url_for("admin.categories"))

    return render_template(
        "admin/category_form.html", title="New Category", form=form, category=None
    )


@admin_bp.route("/categories/<category_id>/edit", methods=["GET", "POST"])
@login_required
def category_edit(category_id):
    services = get_services()
    try:
        category = services.categories.get(category_id)
    except HANDLED_ERRORS as e:
        flash_failure(e, "Failed to load category", category_id=category_id)
        return redirect(url_for("admin.categories"))

    if request.method == "GET":
        form = CategoryForm(data=CategoryForm.data_from(category))
    else:
        form = CategoryForm()
    form.set_template_choices(_load_templates())

    if form.validate_on_submit():
        updated = form.to_category()
        try:
            services.categories.update(category_id, updated)
        except HANDLED_ERRORS as e:
            flash_failure(e, "Failed to update category", category_id=category_id)
        else:
            flash(f'Category "{updated.name}" updated.', "success")
            return redirect(url_for("admin.categories"))

    return render_template(
        "admin/category_form.html",
        title="Edit Category",
        form=form,
        category=category,
    )


@admin_bp.route("/categories/<category_id>/delete", methods=["POST"])
@login_required
def category_delete(category_id):
    form = ActionForm()
    if not form.validate_on_submit():
        abort(400)
    try:
        get_services().categories.delete(category_id)
    except HANDLED_ERRORS as e:
        flash_failure(e, "Failed to delete category", category_id=category_id)
    else:
        flash("Category deleted.", "success")
    return redirect(url_for("admin.categories"))


@admin_bp.route("/categories/<category_id>/media")
@login_required
def category_media(category_id):
    """Browse the media stored under one category."""
    services = get_services()
    try:
        category = services.categories.get(category_id)
        media = services.media.list_by_category(category_id)
    except HANDLED_ERRORS as e:
        flash_failure(e, "Failed to load media", category_id=category_id)
        return redirect(url_for("admin.categories"))
    return render_template(
        "admin/media.html", title=category.name, category=category, media=media
    )


# Templates


@admin_bp.route("/templates")
@login_required
def templates():
    return render_template(
        "admin/templates.html",
        title="Templates",
        templates=_load_templates(),
        action_form=ActionForm(),
    )


def _edit_field_rows(form: TemplateForm) -> TemplateForm | None:
    """
    Apply an "Add field" / "Remove field" click to ``form``.

    Returns the form to re-render, or None when the request is a save.
    """
    if "add_field" in request.form:
        form.fields.append_entry()
        return form
    if "remove_field" in request.form:
        try:
            index = int(request.form["remove_field"])
        except ValueError:
            abort(400)
        rebuilt = TemplateForm(formdata=None, data=form.without_row(index))
        rebuilt.ensure_one_row()
        return rebuilt
    return None


@admin_bp.route("/templates/create", methods=["GET", "POST"])
@login_required
def template_create():
    form = TemplateForm()
    if request.method == "POST":
        edited = _edit_field_rows(form)
        if edited is not None:
            return render_template(
                "admin/template_form.html",
                title="New Template",
                form=edited,
                template=None,
            )

    if form.validate_on_submit():
        template = form.to_template()
        try:
            get_services().templates.create(template)
        except HANDLED_ERRORS as e:
            flash_failure(e, "Failed to create template", name=template.name)
        else:
            flash(f'Template "{template.name}" created.', "success")
            return redirect(url_for("admin.templates"))

    form.ensure_one_row()
    return render_template(
        "admin/template_form.html", title="New Template", form=form, template=None
    )


@admin_bp.route("/templates/<template_id>/edit", methods=["GET", "POST"])
@login_required
def template_edit(template_id):
    services = get_services()
    try:
        template = services.templates.get(template_id)
    except HANDLED_ERRORS as e:
        flash_failure(e, "Failed to load template", template_id=template_id)
        return redirect(url_for("admin.templates"))

    if request.method == "GET":
        form = TemplateForm(data=TemplateForm.data_from(template))
    else:
        form = TemplateForm()
        edited = _edit_field_rows(form)
        if edited is not None:
            return render_template(
                "admin/template_form.html",
                title="Edit Template",
                form=edited,
                template=template,
            )

    if form.validate_on_submit():
        updated = form.to_template()
        try:
            services.templates.update(template_id, updated)
        except HANDLED_ERRORS as e:
            flash_failure(e, "Failed to update template", template_id=template_id)
        else:
            flash(f'Template "{updated.name}" updated.', "success")
            return redirect(url_for("admin.templates"))

    form.ensure_one_row()
    return render_template(
        "admin/template_form.html",
        title="Edit Template",
        form=form,
        template=template,
    )


@admin_bp.route("/templates/<template_id>/delete", methods=["POST"])
@login_required
def template_delete(template_id):
    form = ActionForm()
    if not form.validate_on_submit():
        abort(400)
    try:
        get_services().templates.delete(template_id)
    except HANDLED_ERRORS as e:
        flash_failure(e, "Failed to delete template", template_id=template_id)
    else:
        flash("Template deleted.", "success")
    return redirect(url_for("admin.templates"))


# Uploads


@admin_bp.route("/upload")
@login_required
def upload():
    """Upload page: shared metadata, drop zone and the current batch."""
    metadata_form = UploadMetadataForm()
    metadata_form.set_category_choices(_load_categories())
    batch = get_upload_registry().current(create=False)
    return render_template(
        "admin/upload.html",
        title="Upload",
        metadata_form=metadata_form,
        drop_form=DropForm(),
        action_form=ActionForm(),
        batch=batch,
    )


@admin_bp.route("/upload/files", methods=["POST"])
@login_required
def upload_add_files():
    """Admit dropped files into the session's batch.

    Each rejected file is reported with its own message and never enters the
    batch.
    """
    form = DropForm()
    if not form.validate_on_submit():
        abort(400)

    dropped = [
        DroppedFile(
            filename=storage.filename or "unnamed",
            content_type=storage.mimetype or "",
            data=storage.read(),
        )
        for storage in request.files.getlist(form.files.name)
        if storage and storage.filename
    ]
    config = current_app.config
    accepted, rejections = admit_files(
        dropped,
        max_size=config["UPLOAD_MAX_FILE_SIZE"],
        accepted_types=config["UPLOAD_ACCEPTED_MIME_TYPES"],
    )
    for message in rejections:
        flash(message, "warning")
    if accepted:
        get_upload_registry().current().add(accepted)
        current_app.logger.info("Admitted %d file(s) into upload batch", len(accepted))
    return redirect(url_for("admin.upload"))


@admin_bp.route("/upload/files/<entry_id>/remove", methods=["POST"])
@login_required
def upload_remove_file(entry_id):
    form = ActionForm()
    if not form.validate_on_submit():
        abort(400)
    batch = get_upload_registry().current(create=False)
    if batch is None or not batch.remove(entry_id):
        flash("File could not be removed.", "warning")
    return redirect(url_for("admin.upload"))


@admin_bp.route("/upload/clear", methods=["POST"])
@login_required
def upload_clear():
    form = ActionForm()
    if not form.validate_on_submit():
        abort(400)
    registry = get_upload_registry()
    batch = registry.current(create=False)
    if batch is not None and batch.running:
        flash(f"{BATCH_RUNNING}.", "warning")
        return redirect(url_for("admin.upload"))
    registry.discard()
    flash("Upload list cleared.", "info")
    return redirect(url_for("admin.upload"))


def _wants_json() -> bool:
    return request.accept_mimetypes.best == "application/json"


@admin_bp.route("/upload", methods=["POST"])
@login_required
def upload_submit():
    """
    Upload every outstanding file of the batch with the shared metadata.

    Uploads run concurrently; the page polls ``upload_status`` for progress
    while this request is in flight. Script callers asking for JSON get the
    batch outcome as JSON, form posts are redirected back to the page.
    """
    form = UploadMetadataForm()
    form.set_category_choices(_load_categories())
    if not form.validate_on_submit():
        if _wants_json():
            errors = {k: v for k, v in form.errors.items() if k != "csrf_token"}
            body, status = handle_api_exception(
                ValidationError(errors), "Invalid upload details"
            )
            return jsonify(body), status
        _flash_form_errors(form)
        return redirect(url_for("admin.upload"))

    registry = get_upload_registry()
    batch = registry.current()
    try:
        result = run_batch(batch, form.to_metadata(), get_services().media)
    except ValidationError as e:
        registry.discard_if_empty(batch)
        if _wants_json():
            body, status = handle_api_exception(e, "Upload failed", batch_id=batch.id)
            return jsonify(body), status
        flash_failure(e, "Upload failed", batch_id=batch.id)
        return redirect(url_for("admin.upload"))

    registry.discard_if_empty(batch)
    if result.all_succeeded:
        flash("All files uploaded successfully", "success")
    else:
        flash(
            f"Some files failed to upload: {', '.join(result.failed)}",
            "danger",
        )
    if _wants_json():
        return jsonify(
            {
                "success": result.all_succeeded,
                "succeeded": result.succeeded,
                "failed": result.failed,
                "batch": batch.to_dict(),
            }
        )
    return redirect(url_for("admin.upload"))


@admin_bp.route("/upload/status")
@login_required
@limiter.exempt
def upload_status():
    """Per-file progress of the session's batch, for polling."""
    batch = get_upload_registry().current(create=False)
    if batch is None:
        return jsonify({"id": None, "running": False, "files": []})
    return jsonify(batch.to_dict())


@admin_bp.route("/upload/previews/<entry_id>")
@login_required
def upload_preview(entry_id):
    batch = get_upload_registry().current(create=False)
    entry = batch.get(entry_id) if batch is not None else None
    if entry is None or not entry.preview.active:
        abort(404)
    return send_file(entry.preview.path, mimetype=entry.preview.content_type)
