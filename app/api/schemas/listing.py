"""
Pydantic schemas for listing endpoints
"""
from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Union


class ListingBase(BaseModel):
    """Serialized land listing"""
    id: str
    title: str
    location: str
    type: str
    status: str
    price: str
    priceNum: Union[int, float]
    plotSize: str
    titleType: Optional[str] = ""
    amenities: List[str] = []
    verificationChecklist: List[str] = []
    documentsAvailable: List[str] = []
    mapLink: Optional[str] = None
    description: Optional[str] = ""
    whatsapp: str
    images: List[str] = []
    mediaIds: List[str] = []
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class ListingEnvelope(BaseModel):
    """Single-resource success response"""
    success: bool = True
    message: Optional[str] = None
    data: ListingBase


class ImageLists(BaseModel):
    images: List[str]
    mediaIds: List[str]


class ImageListsEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: ImageLists


class DeleteImageRequest(BaseModel):
    """Body of DELETE /listings/{id}/image"""
    mediaId: Optional[str] = Field(None, description="Media host id of the image to remove")
    publicId: Optional[str] = Field(None, description="Deprecated name for mediaId")


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Uniform error envelope"""
    success: bool = False
    message: str
    errors: Optional[List[str]] = None


class StatisticsData(BaseModel):
    totalListings: int
    byStatus: Dict[str, int]
    byType: Dict[str, int]
    lastUpdated: str


class StatisticsResponse(BaseModel):
    success: bool = True
    data: StatisticsData
