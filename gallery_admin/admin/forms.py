"""
Forms for the admin console: categories, templates, and uploads.

Each form maps onto a model in ``gallery_admin.models``; the models repeat
the same rules so a payload is rejected before the network even when it did
not come through a form.
"""
from flask_wtf import FlaskForm
from wtforms import (
    BooleanField,
    FieldList,
    Form,
    FormField,
    MultipleFileField,
    SelectField,
    StringField,
    SubmitField,
    TextAreaField,
)
from wtforms.validators import DataRequired, Length, Optional

from gallery_admin.models import (
    UNKNOWN_TEMPLATE,
    Category,
    FieldType,
    MediaMetadata,
    Template,
    TemplateField,
)


class ActionForm(FlaskForm):
    """Empty form carrying only the CSRF token, for delete/remove buttons."""


class CategoryForm(FlaskForm):
    name = StringField(
        "Name",
        validators=[
            DataRequired(message="Category name must be at least 2 characters"),
            Length(min=2, message="Category name must be at least 2 characters"),
        ],
        render_kw={"placeholder": "Category Name"},
    )
    description = StringField(
        "Description",
        validators=[Optional()],
        render_kw={"placeholder": "Description (optional)"},
    )
    template_id = SelectField("Template", choices=[], validators=[Optional()])
    submit = SubmitField("Save Category")

    def set_template_choices(self, templates: list[Template]) -> None:
        """Offer every known template; keep a dangling selection selectable."""
        choices = [("", "No template")]
        choices.extend((t.id, t.name) for t in templates)
        current = self.template_id.data
        if current and current not in {value for value, _ in choices}:
            choices.append((current, UNKNOWN_TEMPLATE))
        self.template_id.choices = choices

    def to_category(self) -> Category:
        return Category(
            name=self.name.data or "",
            description=self.description.data,
            template_id=self.template_id.data or None,
        )

    @staticmethod
    def data_from(category: Category) -> dict:
        return {
            "name": category.name,
            "description": category.description or "",
            "template_id": category.template_id or "",
        }


class TemplateFieldForm(Form):
    """One row of a template's field list (no CSRF of its own)."""

    name = StringField(
        "Field Name",
        validators=[
            DataRequired(message="Field name must be at least 2 characters"),
            Length(min=2, message="Field name must be at least 2 characters"),
        ],
    )
    label = StringField(
        "Label",
        validators=[
            DataRequired(message="Label must be at least 2 characters"),
            Length(min=2, message="Label must be at least 2 characters"),
        ],
    )
    type = SelectField(
        "Type", choices=FieldType.choices(), default=FieldType.STRING.value
    )
    required = BooleanField("Required", default=True)


class TemplateForm(FlaskForm):
    name = StringField(
        "Template Name",
        validators=[
            DataRequired(message="Template name must be at least 2 characters"),
            Length(min=2, message="Template name must be at least 2 characters"),
        ],
    )
    description = TextAreaField("Description", validators=[Optional()])
    fields = FieldList(
        FormField(TemplateFieldForm),
        validators=[Length(min=1, message="At least one field is required")],
    )
    submit = SubmitField("Save Template")

    def ensure_one_row(self) -> None:
        if not self.fields.entries:
            self.fields.append_entry()

    def to_template(self) -> Template:
        return Template(
            name=self.name.data or "",
            description=self.description.data,
            fields=[
                TemplateField(
                    name=entry.form.name.data or "",
                    label=entry.form.label.data or "",
                    type=FieldType(entry.form.type.data or FieldType.STRING.value),
                    required=bool(entry.form.required.data),
                )
                for entry in self.fields.entries
            ],
        )

    @staticmethod
    def data_from(template: Template) -> dict:
        return {
            "name": template.name,
            "description": template.description or "",
            "fields": [
                {
                    "name": f.name,
                    "label": f.label,
                    "type": f.type.value,
                    "required": f.required,
                }
                for f in template.fields
            ],
        }

    def without_row(self, index: int) -> dict:
        """Current form data with field row ``index`` removed."""
        data = {
            "name": self.name.data,
            "description": self.description.data,
            "fields": [entry.data for entry in self.fields.entries],
        }
        if 0 <= index < len(data["fields"]):
            del data["fields"][index]
        return data


class DropForm(FlaskForm):
    files = MultipleFileField("Images")
    submit = SubmitField("Add Files")


class UploadMetadataForm(FlaskForm):
    category_id = SelectField(
        "Category",
        choices=[],
        validators=[DataRequired(message="Category is required")],
    )
    title = StringField(
        "Title",
        validators=[
            DataRequired(message="Title is required"),
            Length(min=2, message="Title is required"),
        ],
    )
    description = StringField("Description (Optional)", validators=[Optional()])
    submit = SubmitField("Upload Files")

    def set_category_choices(self, categories: list[Category]) -> None:
        self.category_id.choices = [("", "Select a category")] + [
            (c.id, c.name) for c in categories
        ]

    def to_metadata(self) -> MediaMetadata:
        return MediaMetadata(
            category_id=self.category_id.data or "",
            title=self.title.data or "",
            description=self.description.data,
        )
