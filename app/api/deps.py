from fastapi import Depends
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.services.analysis import AnalysisPipeline, get_analysis_pipeline
from app.services.campaign import CampaignService


def get_campaign_service(
    db: Session = Depends(get_db),
    pipeline: AnalysisPipeline = Depends(get_analysis_pipeline),
) -> CampaignService:
    return CampaignService(db=db, pipeline=pipeline)
