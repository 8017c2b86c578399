import logging

from sqlalchemy.exc import SQLAlchemyError

from tuckshop.tasks.celery_app import celery_app
from tuckshop.database import SessionLocal
from tuckshop.models.product import Product

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="check_low_stock", max_retries=3)
def check_low_stock(self, product_id: int) -> dict:
    """
    Background check run after a sale.

    Re-reads the product and raises a low stock warning when its level
    has fallen to or below the product's threshold.

    Args:
        product_id: Product that was just sold

    Returns:
        Dictionary with the check result
    """
    db = SessionLocal()

    try:
        product = db.query(Product).filter(Product.id == product_id).first()

        if not product:
            logger.error(f"Low stock check: product #{product_id} not found")
            return {"status": "not_found", "product_id": product_id}

        if not product.is_active:
            return {"status": "inactive", "product_id": product_id}

        if product.stock_level <= product.low_stock_threshold:
            logger.warning(
                f"Low stock: '{product.name}' (#{product_id}) at {product.stock_level}, "
                f"threshold {product.low_stock_threshold}"
            )
            status = "low_stock"
        else:
            status = "ok"

        return {
            "status": status,
            "product_id": product_id,
            "stock_level": product.stock_level,
            "low_stock_threshold": product.low_stock_threshold,
        }

    except SQLAlchemyError as e:
        logger.error(f"Low stock check failed for product #{product_id}: {e}")
        raise self.retry(exc=e, countdown=30)

    finally:
        db.close()
